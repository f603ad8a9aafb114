"""HubSpot ``upsertContact`` action: field catalog and perform functions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from destkit.config.batching import DEFAULT_MAX_BATCH_SIZE
from destkit.domain.errors import (
    ConstrainedFieldResetError,
    FatalRemoteError,
    PayloadValidationError,
)
from destkit.domain.mapping import FieldDefinition, FieldType
from destkit.domain.reconciliation import (
    BatchOutcome,
    BatchUpsertEngine,
    RecordAction,
    UpsertPayload,
    UpsertSuccess,
    flatten_properties,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from destkit.domain.mapping import FieldCatalog
    from destkit.domain.ports.transaction import TransactionContext
    from destkit.domain.reconciliation import RecordOutcome

    from .client import HubSpotClient
    from .schema import ContactResult

log = getLogger(__name__)

CONTACT_ID_KEY = "contact_id"
DEFAULT_IDENTIFIER_TYPE = "email"
LIFECYCLE_STAGE = "lifecyclestage"
ADDITIONAL_EMAILS = "hs_additional_emails"

STANDARD_PROPERTIES = (
    "company",
    "firstname",
    "lastname",
    "phone",
    "address",
    "city",
    "state",
    "country",
    "zip",
    "website",
)


def _path(path: str) -> dict[str, str]:
    return {"@path": path}


def _first_of(primary: str, fallback: str) -> dict[str, object]:
    return {"@if": {"exists": _path(primary), "then": _path(primary), "else": _path(fallback)}}


UPSERT_CONTACT_FIELDS: FieldCatalog = {
    # named "email" for historical reasons, it accepts any unique contact property value
    "email": FieldDefinition(
        label="Identifier Value",
        type=FieldType.STRING,
        description=(
            "An identifier for the contact: its email address or the value of any other "
            "unique contact property. Existing contacts are updated, others are created."
        ),
        required=True,
        default=_path("$.traits.email"),
    ),
    "identifier_type": FieldDefinition(
        label="Identifier Type",
        type=FieldType.STRING,
        description="The unique contact property the identifier value belongs to.",
        default=DEFAULT_IDENTIFIER_TYPE,
        dynamic=True,
    ),
    "canonical_id": FieldDefinition(
        label="Canonical Contact Identifier Value",
        type=FieldType.STRING,
        description="Canonical identifier of the contact, filled during processing.",
        hidden=True,
    ),
    "company": FieldDefinition(
        label="Company Name",
        type=FieldType.STRING,
        description="The contact's company.",
        default=_path("$.traits.company"),
    ),
    "firstname": FieldDefinition(
        label="First Name",
        type=FieldType.STRING,
        description="The contact's first name.",
        default=_first_of("$.traits.first_name", "$.traits.firstName"),
    ),
    "lastname": FieldDefinition(
        label="Last Name",
        type=FieldType.STRING,
        description="The contact's last name.",
        default=_first_of("$.traits.last_name", "$.traits.lastName"),
    ),
    "phone": FieldDefinition(
        label="Phone",
        type=FieldType.STRING,
        description="The contact's phone number.",
        default=_path("$.traits.phone"),
    ),
    "address": FieldDefinition(
        label="Street Address",
        type=FieldType.STRING,
        description="The contact's street address, including apartment or unit number.",
        default=_path("$.traits.address.street"),
    ),
    "city": FieldDefinition(
        label="City",
        type=FieldType.STRING,
        description="The contact's city of residence.",
        default=_path("$.traits.address.city"),
    ),
    "state": FieldDefinition(
        label="State",
        type=FieldType.STRING,
        description="The contact's state of residence.",
        default=_path("$.traits.address.state"),
    ),
    "country": FieldDefinition(
        label="Country",
        type=FieldType.STRING,
        description="The contact's country of residence.",
        default=_path("$.traits.address.country"),
    ),
    "zip": FieldDefinition(
        label="Postal Code",
        type=FieldType.STRING,
        description="The contact's zip code.",
        default=_first_of("$.traits.address.postalCode", "$.traits.address.postal_code"),
    ),
    "website": FieldDefinition(
        label="Website",
        type=FieldType.STRING,
        description="The contact's company/other website.",
        default=_path("$.traits.website"),
    ),
    "lifecyclestage": FieldDefinition(
        label="Lifecycle Stage",
        type=FieldType.STRING,
        description=(
            "The contact's stage within the marketing/sales process. "
            "Moving the stage backwards is supported."
        ),
    ),
    "properties": FieldDefinition(
        label="Other properties",
        type=FieldType.OBJECT,
        description=(
            "Any other default or custom contact properties, keyed by internal property name. "
            "Custom properties must be predefined in HubSpot."
        ),
    ),
    "enable_batching": FieldDefinition(
        label="Send Batch Data to HubSpot",
        type=FieldType.BOOLEAN,
        description=(
            "Batch events before sending them to HubSpot, up to 100 per request. Batched "
            "contacts are recorded per identifier rather than as the single contact id."
        ),
        default=False,
    ),
}


@dataclass(slots=True, frozen=True, kw_only=True)
class ContactPayload:
    email: str
    identifier_type: str = DEFAULT_IDENTIFIER_TYPE
    canonical_id: str | None = None
    company: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip: str | None = None
    website: str | None = None
    lifecyclestage: str | None = None
    properties: Mapping[str, object] | None = None
    enable_batching: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ContactPayload:
        def text(name: str) -> str | None:
            value = payload.get(name)
            return None if value is None else str(value)

        email = text("email")
        if not email:
            raise PayloadValidationError.missing_field("email")
        custom = payload.get("properties")
        return cls(
            email=email,
            identifier_type=text("identifier_type") or DEFAULT_IDENTIFIER_TYPE,
            canonical_id=text("canonical_id"),
            company=text("company"),
            firstname=text("firstname"),
            lastname=text("lastname"),
            phone=text("phone"),
            address=text("address"),
            city=text("city"),
            state=text("state"),
            country=text("country"),
            zip=text("zip"),
            website=text("website"),
            lifecyclestage=text("lifecyclestage"),
            properties=custom if isinstance(custom, Mapping) else None,
            enable_batching=bool(payload.get("enable_batching", False)),
        )

    @property
    def identifier_value(self) -> str:
        """Identifier as sent to HubSpot, which stores email addresses lower-cased."""

        if self.identifier_type == DEFAULT_IDENTIFIER_TYPE:
            return self.email.lower()
        return self.email

    @property
    def desired_lifecycle_stage(self) -> str | None:
        return self.lifecyclestage.lower() if self.lifecyclestage else None

    def standard_properties(self) -> dict[str, str | None]:
        values: dict[str, str | None] = {name: getattr(self, name) for name in STANDARD_PROPERTIES}
        values[LIFECYCLE_STAGE] = self.desired_lifecycle_stage
        return values

    def request_properties(self) -> dict[str, object]:
        """Request body properties for the single-contact endpoints."""

        values: dict[str, object] = dict(self.standard_properties())
        values[self.identifier_type] = self.identifier_value
        if self.properties:
            values.update(flatten_properties(self.properties))
        return {name: value for name, value in values.items() if value is not None}

    def to_upsert_payload(self) -> UpsertPayload:
        return UpsertPayload(
            identifier=self.identifier_value,
            properties=self.standard_properties(),
            custom_properties=self.properties,
        )


async def upsert_contact(
    client: HubSpotClient,
    payload: ContactPayload,
    *,
    transaction: TransactionContext | None = None,
) -> UpsertSuccess:
    """Update the contact by identifier, creating it when HubSpot answers 404."""

    body = payload.request_properties()
    try:
        result = await client.update_contact(
            payload.identifier_value,
            id_property=payload.identifier_type,
            properties=body,
        )
    except FatalRemoteError as exc:
        if exc.status_code != 404:
            raise
        log.info("Contact %s not found by %s, creating it", payload.email, payload.identifier_type)
        created = await client.create_contact(body)
        _remember_contact(transaction, created.id)
        return _success(payload, created, RecordAction.CREATE)

    _remember_contact(transaction, result.id)

    desired = payload.desired_lifecycle_stage
    if desired and result.properties.get(LIFECYCLE_STAGE) != desired:
        # HubSpot keeps the later stage when asked to move backwards
        result = await _reapply_lifecycle_stage(client, payload, body, held=result)
    return _success(payload, result, RecordAction.UPDATE)


async def _reapply_lifecycle_stage(
    client: HubSpotClient,
    payload: ContactPayload,
    body: Mapping[str, object],
    *,
    held: ContactResult,
) -> ContactResult:
    log.info(
        "Resetting lifecycle stage of contact %s from %s",
        held.id,
        held.properties.get(LIFECYCLE_STAGE),
    )
    try:
        await client.update_contact(
            payload.identifier_value,
            id_property=payload.identifier_type,
            properties={LIFECYCLE_STAGE: ""},
        )
    except FatalRemoteError as exc:
        restored = await _restore_lifecycle_stage(client, payload, held)
        raise ConstrainedFieldResetError(
            f"Resetting the lifecycle stage failed: {exc.message}",
            category=exc.category,
            status_code=exc.status_code,
            remote_ids=[held.id],
            restored=restored,
        ) from exc
    return await client.update_contact(
        payload.identifier_value,
        id_property=payload.identifier_type,
        properties=body,
    )


async def _restore_lifecycle_stage(
    client: HubSpotClient,
    payload: ContactPayload,
    held: ContactResult,
) -> bool:
    stage = held.properties.get(LIFECYCLE_STAGE)
    if not stage:
        return True
    try:
        await client.update_contact(
            payload.identifier_value,
            id_property=payload.identifier_type,
            properties={LIFECYCLE_STAGE: stage},
        )
    except FatalRemoteError:
        log.exception("Restoring lifecycle stage of contact %s failed", held.id)
        return False
    return True


async def upsert_contact_batch(
    client: HubSpotClient,
    payloads: Sequence[ContactPayload],
    *,
    transaction: TransactionContext | None = None,
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
) -> BatchOutcome:
    """Upsert contacts in batches grouped by identifier type.

    Each group is split into chunks of at most ``max_batch_size`` payloads, and
    every chunk performs one lookup, one create and one update call at most.
    """

    groups: dict[str, list[int]] = {}
    for index, payload in enumerate(payloads):
        groups.setdefault(payload.identifier_type, []).append(index)

    outcomes: dict[int, RecordOutcome] = {}
    for identifier_type, indexes in groups.items():
        engine = BatchUpsertEngine(
            port=client,
            id_property=identifier_type,
            alias_property=ADDITIONAL_EMAILS if identifier_type == DEFAULT_IDENTIFIER_TYPE else None,
            constrained_fields=(LIFECYCLE_STAGE,),
            transaction_key=CONTACT_ID_KEY,
        )
        for chunk in batched(indexes, max_batch_size):
            result = await engine.upsert(
                [payloads[index].to_upsert_payload() for index in chunk],
                transaction=transaction,
            )
            outcomes.update(zip(chunk, result, strict=True))

    return BatchOutcome(tuple(outcomes[index] for index in range(len(payloads))))


def _remember_contact(transaction: TransactionContext | None, contact_id: str) -> None:
    # read by the company upsert action of the same event
    if transaction is not None:
        transaction.set_transaction(CONTACT_ID_KEY, contact_id)


def _success(
    payload: ContactPayload,
    result: ContactResult,
    action: RecordAction,
) -> UpsertSuccess:
    return UpsertSuccess(
        identifier=payload.email,
        action=action,
        remote_id=result.id,
        properties=dict(result.properties),
    )
