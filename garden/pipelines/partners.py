"""Partner matcher: eligible, location-matching partners ranked by rating.

Workflow:
1. Require an address answer with state and city
2. Load partner-eligibility rules and evaluate them against the answers
3. Expand state and city into alias sets
4. Select active partners whose normalized location falls in both sets;
   rows written without normalized columns are matched on raw state and city
5. Rank by rating (nulls last) and explain each match
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from garden import models
from garden.config import settings
from garden.pipelines.normalization import matches_location, normalized_variations
from garden.repository import StoredAnswer
from garden.rules import RuleEngine, RuleEvaluation, load_rules, partition_answers

logger = logging.getLogger(__name__)


@dataclass
class PartnerRecommendation:
    """Partner plus the reason it was recommended."""
    partner_id: uuid.UUID
    email: str
    mobile_number: str
    company_name: str | None
    speciality: list[str]
    address: dict[str, str | None]
    website: str | None
    contact_person: str | None
    project_image_url: str | None
    rating: float | None
    why_recommended: str = ""
    matched_values: list[str] = field(default_factory=list)


class PartnerMatchingError(Exception):
    """Raised when the rule or partner catalog query fails."""
    pass


def explain_partner(
    partner: models.PartnerProfile,
    evaluation: RuleEvaluation,
) -> str:
    """Compose the location match and the matched selections into one sentence."""
    location = ", ".join(part for part in (partner.city, partner.state) if part)
    reason = f"Located in {location}, matching your location"
    values = evaluation.distinct_values()
    if values:
        reason += f", and suited to your selection of {', '.join(values)}"
    return reason + "."


def _rank_key(partner: models.PartnerProfile):
    # rating desc with nulls last, then company name, then id
    return (
        partner.rating is None,
        -(partner.rating or 0.0),
        partner.company_name or "",
        partner.id,
    )


async def _match_unsynced_partners(
    session: AsyncSession,
    state: str,
    city: str,
) -> list[models.PartnerProfile]:
    """Active partners written outside the ORM, matched on their raw location."""
    query = select(models.PartnerProfile).where(
        models.PartnerProfile.status == settings.recommendations.partner_status,
        or_(
            models.PartnerProfile.state_normalized.is_(None),
            models.PartnerProfile.city_normalized.is_(None),
        ),
    )
    result = await session.execute(query)
    return [
        partner
        for partner in result.scalars().all()
        if matches_location(partner.state, state) and matches_location(partner.city, city)
    ]


async def recommend_partners(
    session: AsyncSession,
    answers: list[StoredAnswer],
    *,
    limit: int | None = None,
) -> list[PartnerRecommendation]:
    """Active partners near the respondent, gated by the eligibility rules.

    Returns an empty list (not an error) when there is no usable address,
    no eligibility rule or no matching rule.

    Raises:
        PartnerMatchingError: If a store query fails
    """
    limit = limit or settings.recommendations.partner_limit

    _, address = partition_answers(answers)
    state = address.state if address else None
    city = address.city if address else None
    if not state or not city:
        logger.info("No address answer with state and city, skipping partner matching")
        return []

    try:
        rules = await load_rules(session, settings.recommendations.partner_rule_name)
        if not rules:
            logger.info("No partner eligibility rules configured")
            return []

        evaluation = RuleEngine(rules).evaluate(answers)
        if not evaluation.matched:
            logger.info("No partner eligibility rule matched")
            return []

        states = normalized_variations(state)
        cities = normalized_variations(city)

        query = (
            select(models.PartnerProfile)
            .where(
                models.PartnerProfile.status == settings.recommendations.partner_status,
                models.PartnerProfile.state_normalized.in_(states),
                models.PartnerProfile.city_normalized.in_(cities),
            )
            .order_by(
                models.PartnerProfile.rating.desc().nulls_last(),
                models.PartnerProfile.company_name,
                models.PartnerProfile.id,
            )
            .limit(limit)
        )
        result = await session.execute(query)
        partners = list(result.scalars().all())

        unsynced = await _match_unsynced_partners(session, state, city)
        if unsynced:
            logger.warning(
                f"{len(unsynced)} matching partners lack normalized locations; "
                f"run init_db.py --sync-locations"
            )
            partners = sorted(partners + unsynced, key=_rank_key)[:limit]

    except Exception as e:
        logger.error(f"Partner matching failed: {e}", exc_info=True)
        raise PartnerMatchingError(f"Partner recommendation query failed: {e}") from e

    logger.info(f"Matched {len(partners)} partners for {city!r}, {state!r}")

    return [
        PartnerRecommendation(
            partner_id=partner.id,
            email=partner.email,
            mobile_number=partner.mobile_number,
            company_name=partner.company_name,
            speciality=partner.specialities,
            address={
                "street": partner.street,
                "city": partner.city,
                "state": partner.state,
                "country": partner.country,
                "zip_code": partner.zip_code,
            },
            website=partner.website,
            contact_person=partner.contact_person,
            project_image_url=partner.project_image_url,
            rating=partner.rating,
            why_recommended=explain_partner(partner, evaluation),
            matched_values=evaluation.distinct_values(),
        )
        for partner in partners
    ]
