"""
surge.services.role_service — Level Role Reconciliation
========================================================

Brings a member's level roles in line with their level.  For every
configured threshold the member should hold the role iff
``threshold <= level``; lower-tier roles are kept alongside higher ones.

The pass is idempotent: it compares against the roles the member already
holds, so a second call with the same level makes no API calls.  Each
add/remove is attempted on its own and a failure is logged without stopping
the remaining roles.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

import discord

logger = logging.getLogger(__name__)


@dataclass
class RoleSyncResult:
    """Role ids touched by one reconciliation pass."""

    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class RoleReconciler:
    """Syncs a member's level roles from a threshold → role id map."""

    def __init__(self, level_roles: Mapping[int, int]) -> None:
        self.level_roles: dict[int, int] = dict(sorted(level_roles.items()))

    def desired_roles(self, level: int) -> set[int]:
        """Role ids a member at *level* should hold."""
        return {
            role_id for threshold, role_id in self.level_roles.items()
            if threshold <= level
        }

    async def reconcile(self, member: discord.Member, level: int) -> RoleSyncResult:
        result = RoleSyncResult()
        if not self.level_roles:
            return result

        held = {role.id for role in member.roles}
        reason = f"Level role sync (level {level})"

        for threshold, role_id in self.level_roles.items():
            should_have = threshold <= level
            has_role = role_id in held
            if should_have == has_role:
                continue

            role = member.guild.get_role(role_id)
            if role is None:
                logger.warning(
                    "Level role %d (threshold %d) not found in guild %s — skipping",
                    role_id, threshold, member.guild.id,
                )
                continue

            try:
                if should_have:
                    await member.add_roles(role, reason=reason)
                    result.added.append(role_id)
                else:
                    await member.remove_roles(role, reason=reason)
                    result.removed.append(role_id)
            except discord.HTTPException as exc:
                result.failed.append(role_id)
                logger.warning(
                    "Failed to %s level role %d for member %s: %s",
                    "add" if should_have else "remove", role_id, member.id, exc,
                )

        if result.changed:
            logger.info(
                "Level roles synced for member %s at level %d: +%s -%s",
                member.id, level, result.added, result.removed,
            )
        return result
