"""Derived group rules and membership reconciliation."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.exceptions import (
    AlreadyMemberError,
    DerivedRuleNotFoundError,
    GroupNotFoundError,
    GroupsAPIError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from groups_api.models.domain.derived import DerivedRule, DerivedRuleType, DerivedSyncResult
from groups_api.models.domain.group import AssignmentType, GroupType
from groups_api.models.dto.derived import DerivedRuleCreate
from groups_api.models.orm.derived_rule import DerivedGroupRuleORM
from groups_api.models.orm.group import GroupORM
from groups_api.repositories.derived_rule_repository import DerivedRuleRepository
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.membership_repository import GroupMemberRepository
from groups_api.services.access_policy import can_manage_group
from groups_api.services.cache_service import GroupCache
from groups_api.services.membership_writer import MembershipWriter
from groups_api.utils.secure_logging import log_error, mask_id

logger = logging.getLogger(__name__)

# Rule types whose sources contribute members; the others are stored only
MEMBER_SOURCE_RULES = frozenset({DerivedRuleType.UNION, DerivedRuleType.PARENT_CHILD})


class DerivedGroupService:
    """Service for derived groups.

    A derived group's "derived" memberships mirror the union of the members
    of its active rules' source groups. Memberships added any other way are
    never touched by a sync.
    """

    def __init__(self, session: AsyncSession, cache: GroupCache) -> None:
        """Initialize service with database session and cache."""
        self.session = session
        self.cache = cache
        self.rule_repo = DerivedRuleRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.memberships = MembershipWriter(session, cache)

    async def _get_managed_group(self, group_id: UUID, requester_id: str, is_system_admin: bool) -> GroupORM:
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can manage derived rules")
        return group

    async def _get_rule_or_raise(self, rule_id: UUID) -> DerivedGroupRuleORM:
        rule = await self.rule_repo.get_by_id(rule_id)
        if rule is None:
            raise DerivedRuleNotFoundError(rule_id)
        return rule

    async def create_derived_rule(
        self,
        data: DerivedRuleCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> DerivedRule:
        """Add a rule to a derived group.

        Args:
            data: Rule definition
            requester_id: Requesting owner
            is_system_admin: Requester is a system admin

        Returns:
            Created rule

        Raises:
            GroupNotFoundError: If the derived group or a source group does not exist
            PermissionDeniedError: If the requester is not the owner
            InvalidStateError: If the group is not a derived group
            ValidationError: If a member-source rule has no sources or names itself
        """
        group = await self._get_managed_group(data.derived_group_id, requester_id, is_system_admin)
        if group.group_type != GroupType.DERIVED:
            raise InvalidStateError("Rules can only be added to derived groups")

        source_ids = list(dict.fromkeys(data.source_group_ids or []))
        if data.rule_type in MEMBER_SOURCE_RULES and not source_ids:
            raise ValidationError(f"A {data.rule_type} rule needs at least one source group")
        if group.id in source_ids:
            raise ValidationError("A derived group cannot be its own source")

        found = await self.group_repo.get_many(source_ids)
        missing = [gid for gid in source_ids if gid not in found]
        if missing:
            raise GroupNotFoundError(missing[0])

        rule = await self.rule_repo.create(
            derived_group_id=group.id,
            rule_type=data.rule_type.value,
            source_group_ids=[str(gid) for gid in source_ids] or None,
            condition_rules=data.condition_rules,
            priority=data.priority,
            is_active=True,
        )
        await self.session.commit()

        logger.info("Derived rule %s (%s) added to group %s", rule.id, rule.rule_type, group.id)
        return DerivedRule.model_validate(rule)

    async def list_derived_rules(self, derived_group_id: UUID) -> list[DerivedRule]:
        """List a derived group's rules, highest priority first."""
        return [
            DerivedRule.model_validate(r)
            for r in await self.rule_repo.list_for_group(derived_group_id)
        ]

    async def set_derived_rule_active(
        self,
        rule_id: UUID,
        is_active: bool,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> DerivedRule:
        """Enable or disable a rule. Takes effect on the next sync.

        Raises:
            DerivedRuleNotFoundError: If the rule does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        rule = await self._get_rule_or_raise(rule_id)
        await self._get_managed_group(rule.derived_group_id, requester_id, is_system_admin)

        rule = await self.rule_repo.update(rule_id, is_active=is_active)
        await self.session.commit()
        return DerivedRule.model_validate(rule)

    async def delete_derived_rule(
        self,
        rule_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> None:
        """Delete a rule. Takes effect on the next sync.

        Raises:
            DerivedRuleNotFoundError: If the rule does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        rule = await self._get_rule_or_raise(rule_id)
        await self._get_managed_group(rule.derived_group_id, requester_id, is_system_admin)

        await self.rule_repo.delete(rule_id)
        await self.session.commit()
        logger.info("Derived rule %s deleted by %s", rule_id, mask_id(requester_id))

    async def _compute_target_members(self, rules: list[DerivedGroupRuleORM]) -> set[str]:
        target: set[str] = set()
        for rule in rules:
            if rule.rule_type not in MEMBER_SOURCE_RULES:
                logger.debug("Skipping rule %s: %s rules are not evaluated", rule.id, rule.rule_type)
                continue
            source_ids = [UUID(str(gid)) for gid in rule.source_group_ids or []]
            target |= await self.member_repo.get_user_ids_for_groups(source_ids)
        return target

    async def sync_derived_group_memberships(self, derived_group_id: UUID) -> DerivedSyncResult:
        """Reconcile a derived group's derived memberships with its rules.

        Running it twice without source changes performs no writes the
        second time.

        Args:
            derived_group_id: Derived group UUID

        Returns:
            DerivedSyncResult listing added, removed and skipped users

        Raises:
            GroupNotFoundError: If the group does not exist
            InvalidStateError: If the group is not a derived group
        """
        group = await self.group_repo.get_by_id(derived_group_id)
        if group is None:
            raise GroupNotFoundError(derived_group_id)
        if group.group_type != GroupType.DERIVED:
            raise InvalidStateError("Only derived groups can be synced")

        rules = await self.rule_repo.list_for_group(derived_group_id, active_only=True)
        target = await self._compute_target_members(rules)

        derived_members = {
            m.user_id
            for m in await self.member_repo.list_by_assignment(
                derived_group_id, AssignmentType.DERIVED.value
            )
        }
        all_members = set(await self.member_repo.get_user_ids(derived_group_id))

        result = DerivedSyncResult(derived_group_id=derived_group_id, rules_evaluated=len(rules))

        for user_id in sorted(target - derived_members):
            if user_id in all_members:
                # Holds a membership from another path; leave it alone
                logger.info(
                    "Derived sync skipped user %s in group %s: already a member",
                    mask_id(user_id),
                    derived_group_id,
                )
                result.skipped.append(user_id)
                continue
            try:
                await self.memberships.add(derived_group_id, user_id, AssignmentType.DERIVED)
            except AlreadyMemberError:
                logger.info(
                    "Derived sync skipped user %s in group %s: concurrent join",
                    mask_id(user_id),
                    derived_group_id,
                )
                result.skipped.append(user_id)
                continue
            result.added.append(user_id)

        for user_id in sorted(derived_members - target):
            await self.memberships.remove(derived_group_id, user_id)
            result.removed.append(user_id)

        if result.changed:
            await self.session.commit()
            await self.memberships.invalidate(derived_group_id, *result.added, *result.removed)
            logger.info(
                "Derived group %s synced: %d added, %d removed",
                derived_group_id,
                len(result.added),
                len(result.removed),
            )

        return result

    async def sync_all_derived_groups(self) -> list[DerivedSyncResult]:
        """Sync every derived group, including those without active rules.

        A group whose last rule was disabled or deleted still loses its
        derived members here. A failing group is logged and does not stop
        the others.

        Returns:
            Results of the groups that synced
        """
        results = []
        for group_id in await self.group_repo.list_ids_by_type(GroupType.DERIVED.value):
            try:
                results.append(await self.sync_derived_group_memberships(group_id))
            except GroupsAPIError as e:
                await self.session.rollback()
                log_error(logger, f"Derived sync failed for group {group_id}", e)
        return results
