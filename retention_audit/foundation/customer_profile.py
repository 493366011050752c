"""Customer master attributes carried alongside the fact table.

Profile attributes (email, country, segment, acquisition channel, signup date)
are pure pass-through enrichment. No threshold or score in the pipeline ever
reads them; they exist so exported rows can be sliced by segment or channel
in downstream tooling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

from retention_audit.foundation.customer_facts import CustomerFacts
from retention_audit.foundation.periods import to_date


@dataclass(frozen=True)
class CustomerProfile:
    """Optional master-data attributes for a customer."""

    customer_id: str
    email: str | None = None
    country: str | None = None
    segment: str | None = None
    acquisition_channel: str | None = None
    signup_date: date | None = None


@dataclass(frozen=True)
class EnrichedCustomer:
    """Customer facts joined with their (possibly missing) profile."""

    facts: CustomerFacts
    profile: CustomerProfile | None

    def as_dict(self) -> dict[str, Any]:
        payload = self.facts.as_dict()
        profile = self.profile
        payload.update(
            {
                "email": profile.email if profile else None,
                "country": profile.country if profile else None,
                "segment": profile.segment if profile else None,
                "acquisition_channel": profile.acquisition_channel if profile else None,
                "signup_date": (
                    profile.signup_date.isoformat()
                    if profile and profile.signup_date
                    else None
                ),
            }
        )
        return payload


class CustomerProfileContract:
    """Validate raw customer master records into :class:`CustomerProfile`."""

    #: Fields that must be populated for a profile to be accepted.
    REQUIRED_FIELDS = {"customer_id"}

    #: Field aliases used by common customer master exports.
    ALIASES = {"customer_email": "email", "customer_segment": "segment"}

    def validate_records(
        self, records: Iterable[Mapping[str, Any]]
    ) -> dict[str, CustomerProfile]:
        """Validate raw records and return profiles keyed by customer id.

        Later records for the same customer take precedence for the fields
        they populate.
        """

        profiles: dict[str, CustomerProfile] = {}
        for idx, record in enumerate(records):
            data = {self.ALIASES.get(key, key): value for key, value in record.items()}

            missing = [name for name in self.REQUIRED_FIELDS if not data.get(name)]
            if missing:
                raise ValueError(
                    "Record missing required profile fields",
                    {"missing_fields": missing, "record_index": idx},
                )

            signup = data.get("signup_date")
            profile = CustomerProfile(
                customer_id=str(data["customer_id"]),
                email=data.get("email"),
                country=data.get("country"),
                segment=data.get("segment"),
                acquisition_channel=data.get("acquisition_channel"),
                signup_date=(
                    to_date(signup, field_name=f"signup_date at index {idx}")
                    if signup
                    else None
                ),
            )

            existing = profiles.get(profile.customer_id)
            if existing is not None:
                profile = CustomerProfile(
                    customer_id=profile.customer_id,
                    email=profile.email or existing.email,
                    country=profile.country or existing.country,
                    segment=profile.segment or existing.segment,
                    acquisition_channel=(
                        profile.acquisition_channel or existing.acquisition_channel
                    ),
                    signup_date=profile.signup_date or existing.signup_date,
                )
            profiles[profile.customer_id] = profile
        return profiles


def enrich_facts(
    facts: Mapping[str, CustomerFacts],
    profiles: Mapping[str, CustomerProfile],
) -> list[EnrichedCustomer]:
    """Left-join profiles onto facts; customers without a profile are kept."""

    return [
        EnrichedCustomer(facts=customer_facts, profile=profiles.get(customer_id))
        for customer_id, customer_facts in sorted(facts.items())
    ]
