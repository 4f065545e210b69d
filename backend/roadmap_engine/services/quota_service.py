"""LLM quota checks and usage accounting.

Counters are updated read-then-write, so under concurrent calls they are
approximate. That is acceptable for a soft usage cap.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from roadmap_engine.core.config import get_settings
from roadmap_engine.core.errors import QuotaExceededError
from roadmap_engine.core.logging import get_logger
from roadmap_engine.models.usage import UsageMetric, UserQuota
from roadmap_engine.models.user import ADMIN_ROLES, User, UserRole

logger = get_logger(__name__)

# Accounts shown in the ops usage listing
USAGE_LISTED_ROLES = frozenset({UserRole.CONSULTANT_APPROVED.value, *ADMIN_ROLES})


@dataclass(frozen=True)
class QuotaLimits:
    daily_limit: int
    monthly_limit: int


@dataclass(frozen=True)
class UsageSummary:
    daily: int
    monthly: int
    daily_limit: int
    monthly_limit: int

    @property
    def daily_remaining(self) -> int:
        return max(0, self.daily_limit - self.daily)

    @property
    def monthly_remaining(self) -> int:
        return max(0, self.monthly_limit - self.monthly)


@dataclass(frozen=True)
class QuotaStatus:
    exceeded: bool
    reason: str | None = None  # "daily" | "monthly"
    message: str | None = None


def current_period(now: datetime | None = None) -> tuple[str, str]:
    """(YYYY-MM-DD, YYYY-MM) in the quota time zone."""
    tz = ZoneInfo(get_settings().QUOTA_TIMEZONE)
    local = now.astimezone(tz) if now is not None else datetime.now(tz)
    day = local.strftime("%Y-%m-%d")
    return day, day[:7]


async def get_user_quota(db: AsyncSession, user_id: int) -> QuotaLimits:
    """Configured limits for a user, falling back to the defaults from settings."""
    result = await db.execute(select(UserQuota).where(UserQuota.user_id == user_id))
    quota = result.scalar_one_or_none()
    if quota is None:
        settings = get_settings()
        return QuotaLimits(settings.QUOTA_DAILY_LIMIT, settings.QUOTA_MONTHLY_LIMIT)
    return QuotaLimits(quota.daily_limit, quota.monthly_limit)


async def get_user_usage(
    db: AsyncSession, user_id: int, *, now: datetime | None = None
) -> UsageSummary:
    day, month = current_period(now)
    limits = await get_user_quota(db, user_id)

    daily = await db.execute(
        select(UsageMetric.llm_calls).where(UsageMetric.user_id == user_id, UsageMetric.date == day)
    )
    monthly = await db.execute(
        select(func.coalesce(func.sum(UsageMetric.llm_calls), 0)).where(
            UsageMetric.user_id == user_id, UsageMetric.month == month
        )
    )

    return UsageSummary(
        daily=daily.scalar_one_or_none() or 0,
        monthly=monthly.scalar_one(),
        daily_limit=limits.daily_limit,
        monthly_limit=limits.monthly_limit,
    )


async def check_quota_exceeded(
    db: AsyncSession, user_id: int, *, now: datetime | None = None
) -> QuotaStatus:
    """Daily allowance is checked before the monthly one."""
    usage = await get_user_usage(db, user_id, now=now)

    if usage.daily >= usage.daily_limit:
        return QuotaStatus(
            exceeded=True,
            reason="daily",
            message=f"Daily usage limit ({usage.daily_limit} calls) reached. Try again tomorrow.",
        )
    if usage.monthly >= usage.monthly_limit:
        return QuotaStatus(
            exceeded=True,
            reason="monthly",
            message=(
                f"Monthly usage limit ({usage.monthly_limit} calls) reached. "
                "Contact an administrator."
            ),
        )
    return QuotaStatus(exceeded=False)


async def ensure_quota_available(
    db: AsyncSession, user_id: int, *, now: datetime | None = None
) -> None:
    """Raise QuotaExceededError when the user may not spend another LLM call."""
    status = await check_quota_exceeded(db, user_id, now=now)
    if status.exceeded:
        logger.info("LLM quota exceeded", user_id=user_id, reason=status.reason)
        raise QuotaExceededError(status.message or "Usage limit reached.", reason=status.reason or "")


async def record_llm_usage(
    db: AsyncSession,
    user_id: int,
    tokens_in: int = 0,
    tokens_out: int = 0,
    calls: int = 1,
    *,
    now: datetime | None = None,
) -> UsageMetric:
    """Add calls and tokens to today's counters.

    Note: This function flushes but does not commit.
    """
    day, month = current_period(now)
    result = await db.execute(
        select(UsageMetric).where(UsageMetric.user_id == user_id, UsageMetric.date == day)
    )
    metric = result.scalar_one_or_none()

    if metric is None:
        metric = UsageMetric(
            user_id=user_id,
            date=day,
            month=month,
            llm_calls=calls,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
        )
        db.add(metric)
    else:
        metric.llm_calls += calls
        metric.tokens_in += tokens_in
        metric.tokens_out += tokens_out

    await db.flush()
    logger.debug("LLM usage recorded", user_id=user_id, date=day, calls=metric.llm_calls)
    return metric


async def update_user_quota(
    db: AsyncSession,
    user_id: int,
    daily_limit: int | None = None,
    monthly_limit: int | None = None,
) -> QuotaLimits:
    """Set a user's limits (admin operation), creating the quota row if needed.

    Note: This function flushes but does not commit.
    """
    result = await db.execute(select(UserQuota).where(UserQuota.user_id == user_id))
    quota = result.scalar_one_or_none()
    settings = get_settings()

    if quota is None:
        quota = UserQuota(
            user_id=user_id,
            daily_limit=settings.QUOTA_DAILY_LIMIT if daily_limit is None else daily_limit,
            monthly_limit=settings.QUOTA_MONTHLY_LIMIT if monthly_limit is None else monthly_limit,
        )
        db.add(quota)
    else:
        if daily_limit is not None:
            quota.daily_limit = daily_limit
        if monthly_limit is not None:
            quota.monthly_limit = monthly_limit

    await db.flush()
    logger.info(
        "User quota updated",
        user_id=user_id,
        daily_limit=quota.daily_limit,
        monthly_limit=quota.monthly_limit,
    )
    return QuotaLimits(quota.daily_limit, quota.monthly_limit)


@dataclass(frozen=True)
class UserUsageRow:
    user_id: int
    name: str | None
    email: str | None
    role: str
    llm_calls: int
    tokens_in: int
    tokens_out: int
    daily_limit: int
    monthly_limit: int

    @property
    def usage_percent(self) -> int:
        """Monthly calls as a percentage of the monthly limit."""
        if self.monthly_limit <= 0:
            return 100 if self.llm_calls else 0
        return round(self.llm_calls * 100 / self.monthly_limit)


@dataclass(frozen=True)
class UsagePage:
    users: list[UserUsageRow]
    total: int
    page: int
    limit: int
    month: str

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit)


async def list_users_usage(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 20,
    month: str | None = None,
    now: datetime | None = None,
) -> UsagePage:
    """Monthly usage and limits of consultants and admins, ordered by name.

    ``month`` is ``YYYY-MM`` and defaults to the current month in the quota
    time zone. Users without usage rows report zero; users without a quota
    row report the default limits.
    """
    page, limit = max(page, 1), max(limit, 1)
    month = month or current_period(now)[1]

    listed = select(User).where(User.role.in_(USAGE_LISTED_ROLES))
    total = (
        await db.execute(select(func.count()).select_from(listed.subquery()))
    ).scalar_one()
    users = (
        await db.execute(
            listed.order_by(User.name, User.id).offset((page - 1) * limit).limit(limit)
        )
    ).scalars().all()
    if not users:
        return UsagePage(users=[], total=total, page=page, limit=limit, month=month)

    user_ids = [user.id for user in users]
    usage_rows = await db.execute(
        select(
            UsageMetric.user_id,
            func.sum(UsageMetric.llm_calls),
            func.sum(UsageMetric.tokens_in),
            func.sum(UsageMetric.tokens_out),
        )
        .where(UsageMetric.user_id.in_(user_ids), UsageMetric.month == month)
        .group_by(UsageMetric.user_id)
    )
    usage = {user_id: (calls, t_in, t_out) for user_id, calls, t_in, t_out in usage_rows}

    quota_rows = await db.execute(select(UserQuota).where(UserQuota.user_id.in_(user_ids)))
    quotas = {quota.user_id: quota for quota in quota_rows.scalars()}

    settings = get_settings()
    rows = []
    for user in users:
        calls, tokens_in, tokens_out = usage.get(user.id, (0, 0, 0))
        quota = quotas.get(user.id)
        rows.append(
            UserUsageRow(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                llm_calls=calls or 0,
                tokens_in=tokens_in or 0,
                tokens_out=tokens_out or 0,
                daily_limit=quota.daily_limit if quota else settings.QUOTA_DAILY_LIMIT,
                monthly_limit=quota.monthly_limit if quota else settings.QUOTA_MONTHLY_LIMIT,
            )
        )
    return UsagePage(users=rows, total=total, page=page, limit=limit, month=month)
