"""
The standard method shapes of RFC 8620 §5.

Data types define their methods by subclassing these and setting
``name`` (and ``requires``), narrowing field types where useful::

    @dataclass
    class MailboxGet(GetRequest):
        name = "Mailbox/get"
        requires = (CORE_CAPABILITY, MAIL_CAPABILITY)

    @dataclass
    class MailboxGetResponse(GetResponse):
        list_: list[Mailbox] = field(default_factory=list, metadata={"jmap": "list"})

    register_method("Mailbox/get", MailboxGetResponse)

Any argument may hold a :class:`~jmap.objects.base.ResultReference`
instead of a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from jmap.lib.types import Id
from jmap.method import Method, MethodResponse, SetError
from jmap.objects.base import JMAPObject


@dataclass
class Comparator(JMAPObject):
    """One sort criterion for a ``/query`` (RFC 8620 §5.5)."""

    property: str
    is_ascending: bool = True
    collation: str | None = None


@dataclass
class FilterCondition(JMAPObject):
    """Base of the leaf conditions of a query filter.

    Each data type subclasses this with its own condition properties.
    """


@dataclass
class FilterOperator(JMAPObject):
    """An ``AND`` / ``OR`` / ``NOT`` node over nested filters."""

    AND: ClassVar[str] = "AND"
    OR: ClassVar[str] = "OR"
    NOT: ClassVar[str] = "NOT"

    operator: str
    conditions: list[FilterOperator | FilterCondition] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.operator not in (self.AND, self.OR, self.NOT):
            raise ValueError(f"filter operator must be AND, OR or NOT, got {self.operator!r}")
        for condition in self.conditions:
            if not isinstance(condition, (FilterOperator, FilterCondition)):
                raise TypeError(f"filter conditions must be FilterOperator or FilterCondition, got {condition!r}")

    @classmethod
    def all_of(cls, *conditions) -> FilterOperator:
        return cls(operator=cls.AND, conditions=list(conditions))

    @classmethod
    def any_of(cls, *conditions) -> FilterOperator:
        return cls(operator=cls.OR, conditions=list(conditions))

    @classmethod
    def none_of(cls, *conditions) -> FilterOperator:
        return cls(operator=cls.NOT, conditions=list(conditions))


@dataclass
class AddedItem(JMAPObject):
    id: Id
    index: int


@dataclass
class GetRequest(Method):
    """``Foo/get``: fetch objects by id; ``ids=None`` fetches all."""

    account_id: Id
    ids: list[Id] | None = None
    properties: list[str] | None = None


@dataclass
class GetResponse(MethodResponse):
    account_id: Id
    state: str
    list_: list[Any] = field(default_factory=list, metadata={"jmap": "list"})
    not_found: list[Id] = field(default_factory=list)


@dataclass
class ChangesRequest(Method):
    """``Foo/changes``: ids changed since a previous ``state``."""

    account_id: Id
    since_state: str
    max_changes: int | None = None


@dataclass
class ChangesResponse(MethodResponse):
    account_id: Id
    old_state: str
    new_state: str
    has_more_changes: bool = False
    created: list[Id] = field(default_factory=list)
    updated: list[Id] = field(default_factory=list)
    destroyed: list[Id] = field(default_factory=list)


@dataclass
class SetRequest(Method):
    """``Foo/set``: create, update (with patch objects) and destroy."""

    account_id: Id
    if_in_state: str | None = None
    create: dict[Id, Any] | None = None
    update: dict[Id, dict[str, Any]] | None = None
    destroy: list[Id] | None = None


@dataclass
class SetResponse(MethodResponse):
    """Result of ``Foo/set``.

    Per-record failures are in the ``not_*`` maps as :class:`SetError`
    values; the call itself still succeeded.
    """

    account_id: Id
    new_state: str
    old_state: str | None = None
    created: dict[Id, Any] | None = None
    updated: dict[Id, Any] | None = None
    destroyed: list[Id] | None = None
    not_created: dict[Id, SetError] | None = None
    not_updated: dict[Id, SetError] | None = None
    not_destroyed: dict[Id, SetError] | None = None


@dataclass
class CopyRequest(Method):
    """``Foo/copy``: copy records from another account."""

    from_account_id: Id
    account_id: Id
    create: dict[Id, Any]
    if_from_in_state: str | None = None
    if_in_state: str | None = None
    on_success_destroy_original: bool | None = None
    destroy_from_if_in_state: str | None = None


@dataclass
class CopyResponse(MethodResponse):
    from_account_id: Id
    account_id: Id
    new_state: str
    old_state: str | None = None
    created: dict[Id, Any] | None = None
    not_created: dict[Id, SetError] | None = None


@dataclass
class QueryRequest(Method):
    """``Foo/query``: a filtered, sorted window of ids."""

    account_id: Id
    filter: FilterOperator | FilterCondition | None = None
    sort: list[Comparator] | None = None
    position: int | None = None
    anchor: Id | None = None
    anchor_offset: int | None = None
    limit: int | None = None
    calculate_total: bool | None = None


@dataclass
class QueryResponse(MethodResponse):
    account_id: Id
    query_state: str
    can_calculate_changes: bool
    position: int
    ids: list[Id] = field(default_factory=list)
    total: int | None = None
    limit: int | None = None


@dataclass
class QueryChangesRequest(Method):
    """``Foo/queryChanges``: how a cached query result changed."""

    account_id: Id
    since_query_state: str
    filter: FilterOperator | FilterCondition | None = None
    sort: list[Comparator] | None = None
    max_changes: int | None = None
    up_to_id: Id | None = None
    calculate_total: bool | None = None


@dataclass
class QueryChangesResponse(MethodResponse):
    account_id: Id
    old_query_state: str
    new_query_state: str
    total: int | None = None
    removed: list[Id] = field(default_factory=list)
    added: list[AddedItem] = field(default_factory=list)
