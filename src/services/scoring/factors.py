"""Factor functions for lead scoring.

Every function takes a lead snapshot and the current time and returns a
``(score, reason)`` tuple on a 0-100 scale. Missing input data scores 0.
"""

import math
from collections.abc import Callable
from datetime import datetime

from src.models.lead import LeadSource, LeadStatus
from src.schemas.lead import LeadSnapshot
from src.services.scoring.config import FactorKind

FactorFunction = Callable[[LeadSnapshot, datetime], tuple[float, str]]

SOURCE_QUALITY: dict[LeadSource, int] = {
    LeadSource.REFERRAL: 90,
    LeadSource.WEBSITE: 80,
    LeadSource.OPEN_HOUSE: 75,
    LeadSource.EMAIL_CAMPAIGN: 70,
    LeadSource.SOCIAL_MEDIA: 65,
    LeadSource.SMS_CAMPAIGN: 60,
    LeadSource.PARTNER: 55,
    LeadSource.FOR_SALE_SIGN: 50,
    LeadSource.ONLINE_AD: 45,
    LeadSource.PRINT_AD: 40,
    LeadSource.RADIO_AD: 35,
    LeadSource.TV_AD: 30,
    LeadSource.EVENT: 25,
    LeadSource.COLD_CALL: 20,
    LeadSource.OTHER: 10,
}
UNKNOWN_SOURCE_SCORE = 10

URGENT_STATUSES = frozenset(
    {
        LeadStatus.NEGOTIATING,
        LeadStatus.OFFER_MADE,
        LeadStatus.UNDER_CONTRACT,
        LeadStatus.APPOINTMENT_SCHEDULED,
    }
)

SOPHISTICATED_TERMS = ("closing costs", "escrow", "contingency", "inspection")

SUCCESSFUL = "successful"


def _days_until(moment: datetime, now: datetime) -> int:
    return math.ceil((moment - now).total_seconds() / 86400)


def property_preferences_match(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    prefs = lead.property_preferences
    if prefs is None:
        return 0, "No property preferences defined"

    score = 50.0  # Base score

    if prefs.property_types:
        score += min(len(prefs.property_types) * 5, 20)

    if prefs.min_price and prefs.max_price:
        price_range = prefs.max_price - prefs.min_price
        score += max(0.0, 100 - (price_range / prefs.max_price) * 100) * 0.2

    if prefs.preferred_locations:
        score += min(len(prefs.preferred_locations) * 3, 15)

    if prefs.must_have_features:
        score += min(len(prefs.must_have_features) * 2, 10)

    return (
        min(score, 100),
        "Property preferences match based on type specificity, price range and locations",
    )


def location_preference(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    prefs = lead.property_preferences
    if prefs is None or not prefs.preferred_locations:
        return 0, "No location preferences defined"

    locations = prefs.preferred_locations
    # Fewer locations = more specific
    if len(locations) == 1:
        score = 90
    elif len(locations) <= 3:
        score = 70
    elif len(locations) <= 5:
        score = 50
    else:
        score = 30

    specific = [loc for loc in locations if "," in loc or len(loc.split(" ")) <= 2]
    if specific:
        score += 10

    return (
        min(score, 100),
        f"Location preference based on {len(locations)} locations with {len(specific)} specific areas",
    )


def budget_alignment(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    prefs = lead.property_preferences
    if prefs is None or not prefs.min_price or not prefs.max_price:
        return 0, "No budget information available"

    range_percentage = (prefs.max_price - prefs.min_price) / prefs.max_price * 100

    if range_percentage <= 20:
        score = 90  # Very specific budget
    elif range_percentage <= 40:
        score = 70
    elif range_percentage <= 60:
        score = 50
    else:
        score = 30  # Very wide range

    # Flat market-realism bonus
    score += 10

    return min(score, 100), f"Budget alignment based on price range of {range_percentage:.1f}%"


def financial_qualification(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    fin = lead.financial_info
    if fin is None:
        return 0, "No financial information available"

    score = 0
    if fin.pre_approved:
        score += 40

    if fin.down_payment_percentage:
        if fin.down_payment_percentage >= 20:
            score += 30
        elif fin.down_payment_percentage >= 10:
            score += 20
        elif fin.down_payment_percentage >= 5:
            score += 10

    if fin.credit_score:
        if fin.credit_score >= 750:
            score += 20
        elif fin.credit_score >= 700:
            score += 15
        elif fin.credit_score >= 650:
            score += 10

    if fin.employment_status == "employed" and fin.employment_length_months:
        if fin.employment_length_months >= 24:
            score += 10
        elif fin.employment_length_months >= 12:
            score += 5

    return (
        min(score, 100),
        "Financial qualification based on pre-approval, down payment, credit score and employment",
    )


def engagement_level(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    comms = lead.communication_history
    if not comms:
        return 0, "No communication history available"

    score = 0.0
    if len(comms) >= 10:
        score += 30
    elif len(comms) >= 5:
        score += 20
    elif len(comms) >= 2:
        score += 10

    if any((now - c.timestamp).total_seconds() < 7 * 86400 for c in comms):
        score += 20

    response_rate = sum(1 for c in comms if c.outcome == SUCCESSFUL) / len(comms)
    score += response_rate * 30

    directions = {c.direction for c in comms}
    if {"inbound", "outbound"} <= directions:
        score += 20

    return (
        min(score, 100),
        f"Engagement level based on {len(comms)} communications with {response_rate:.1f} response rate",
    )


def source_quality(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    if lead.source is None:
        return 0, "No lead source recorded"
    score = SOURCE_QUALITY.get(lead.source, UNKNOWN_SOURCE_SCORE)
    return score, f"Source quality score for {lead.source.value} lead source"


def urgency_indicator(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    score = 0

    if lead.expected_close_date is not None:
        days = _days_until(lead.expected_close_date, now)
        if days <= 30:
            score += 40
        elif days <= 60:
            score += 30
        elif days <= 90:
            score += 20

    if lead.next_follow_up_date is not None:
        days = _days_until(lead.next_follow_up_date, now)
        if days <= 1:
            score += 30
        elif days <= 3:
            score += 20
        elif days <= 7:
            score += 10

    if lead.status in URGENT_STATUSES:
        score += 30

    return min(score, 100), "Urgency based on close date, follow-up timing and current status"


def communication_responsiveness(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    comms = lead.communication_history
    if not comms:
        return 0, "No communication history available"

    outbound = sorted(c.timestamp for c in comms if c.direction == "outbound")
    latencies: list[float] = []
    for comm in comms:
        if comm.direction != "inbound" or comm.outcome != SUCCESSFUL:
            continue
        earlier = [t for t in outbound if t < comm.timestamp]
        if earlier:
            latencies.append((comm.timestamp - earlier[-1]).total_seconds())

    if not latencies:
        return 0, "No responsive communications found"

    hours = sum(latencies) / len(latencies) / 3600
    if hours <= 1:
        score = 90
    elif hours <= 4:
        score = 80
    elif hours <= 24:
        score = 70
    elif hours <= 48:
        score = 50
    elif hours <= 168:
        score = 30
    else:
        score = 10

    return score, f"Communication responsiveness based on average response time of {hours:.1f} hours"


def market_knowledge(lead: LeadSnapshot, now: datetime) -> tuple[float, str]:
    if not (lead.properties_viewed or lead.offers or lead.communication_history):
        return 0, "No viewing, offer or communication history available"

    score = 50  # Base score
    if lead.properties_viewed:
        score += min(len(lead.properties_viewed) * 5, 30)
    if lead.offers:
        score += min(len(lead.offers) * 10, 20)
    if any(
        term in c.content.lower()
        for c in lead.communication_history
        for term in SOPHISTICATED_TERMS
    ):
        score += 20

    return (
        min(score, 100),
        "Market knowledge based on property viewings, offer history and communication sophistication",
    )


FACTOR_FUNCTIONS: dict[FactorKind, FactorFunction] = {
    FactorKind.PROPERTY_PREFERENCES_MATCH: property_preferences_match,
    FactorKind.LOCATION_PREFERENCE: location_preference,
    FactorKind.BUDGET_ALIGNMENT: budget_alignment,
    FactorKind.FINANCIAL_QUALIFICATION: financial_qualification,
    FactorKind.ENGAGEMENT_LEVEL: engagement_level,
    FactorKind.SOURCE_QUALITY: source_quality,
    FactorKind.URGENCY_INDICATOR: urgency_indicator,
    FactorKind.COMMUNICATION_RESPONSIVENESS: communication_responsiveness,
    FactorKind.MARKET_KNOWLEDGE: market_knowledge,
}
