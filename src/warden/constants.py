"""
Application constants for the Warden moderation engine.

This module contains shared constants used across multiple engine modules,
including the per-action capability table and audit-reason templates.
"""

from warden.platform import Capability, ChannelKind

# Platform capability each privileged action requires before role bindings
# are even consulted. Actions missing from this table are always refused.
ACTION_CAPABILITIES: dict[str, Capability] = {
    "ban": Capability.BAN_MEMBERS,
    "mute": Capability.MANAGE_ROLES,
    "unmute": Capability.MANAGE_ROLES,
    "lock": Capability.MANAGE_CHANNELS,
    "unlock": Capability.MANAGE_CHANNELS,
    "lockdown": Capability.MANAGE_CHANNELS,
    "unlockdown": Capability.MANAGE_CHANNELS,
    "lockhour": Capability.MANAGE_CHANNELS,
    "warn": Capability.MANAGE_MESSAGES,
    "warns": Capability.MANAGE_MESSAGES,
    "clearwarns": Capability.MANAGE_MESSAGES,
}

# Actions offered by the setup panel, in display order
CONFIGURABLE_ACTIONS = (
    "ban",
    "mute",
    "warn",
    "lock",
    "unlock",
    "clearwarns",
    "warns",
    "lockdown",
    "lockhour",
)

# Channels whose broadcast permission a lockdown snapshots and denies
BROADCAST_CHANNEL_KINDS = frozenset(
    {ChannelKind.TEXT, ChannelKind.ANNOUNCEMENT, ChannelKind.VOICE}
)

DEFAULT_REASON = "No reason provided"

# Audit-log reasons attached to role changes
MUTE_REASON = "Muted by {issuer_id}: {reason}"
UNMUTE_REASON = "Unmuted by {issuer_id}"
AUTO_UNMUTE_REASON = "Automatic unmute (expired)"

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR
