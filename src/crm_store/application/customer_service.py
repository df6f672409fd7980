"""Customer use cases: CRUD and paginated search.

Contact details are validated before anything else, so an update with a
bad email on a missing id reports InvalidInputError, not NotFoundError.
Customers carry no update timestamp; an update overwrites name, email and
phone and persists the result.
"""

from __future__ import annotations

import time
from typing import Callable

from crm_store.application.id_sequence import IdSequence
from crm_store.application.instrumentation import observed
from crm_store.domain.entities import Customer
from crm_store.domain.errors import InvalidInputError, NotFoundError
from crm_store.domain.services import DurableBTreeMap, is_valid_contact
from crm_store.domain.value_objects import SearchResult
from crm_store.infrastructure.logging import get_logger
from crm_store.infrastructure.metrics import MetricsRegistry

Clock = Callable[[], int]

logger = get_logger(__name__)

INVALID_CONTACT_MSG = "Invalid email or phone format"


class CustomerService:
    """Create, read, update, delete and search customers."""

    def __init__(
        self,
        customers: DurableBTreeMap[Customer],
        ids: IdSequence,
        clock: Clock = time.time_ns,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            customers: The customer map.
            ids: Id sequence shared with the interaction service.
            clock: Source of nanosecond timestamps.
            metrics: Optional metrics registry.
        """
        self._customers = customers
        self._ids = ids
        self._clock = clock
        self._metrics = metrics

    def _update_gauges(self) -> None:
        if self._metrics is not None:
            self._metrics.set_record_count("customer", len(self._customers))
            self._metrics.last_id.set(self._ids.current())

    def add_customer(self, name: str, email: str, phone: str) -> Customer:
        """Create a customer with a freshly minted id.

        Raises:
            InvalidInputError: If the email or phone is malformed.
        """
        with observed(self._metrics, "add_customer"):
            if not is_valid_contact(email, phone):
                raise InvalidInputError(INVALID_CONTACT_MSG)

            customer = Customer(
                id=self._ids.next_id(),
                name=name,
                email=email,
                phone=phone,
                created_at=self._clock(),
            )
            self._customers.insert(customer.id, customer)
            self._update_gauges()

            logger.info("customer_added", customer_id=customer.id)
            return customer

    def get_customer(self, customer_id: int) -> Customer:
        """Return a customer.

        Raises:
            NotFoundError: If no customer has this id.
        """
        with observed(self._metrics, "get_customer", customer_id=customer_id):
            customer = self._customers.get(customer_id)
            if customer is None:
                raise NotFoundError(f"a customer with id={customer_id} not found")
            return customer

    def update_customer(self, customer_id: int, name: str, email: str, phone: str) -> Customer:
        """Overwrite a customer's name, email and phone.

        Raises:
            InvalidInputError: If the email or phone is malformed (checked first).
            NotFoundError: If no customer has this id.
        """
        with observed(self._metrics, "update_customer", customer_id=customer_id):
            if not is_valid_contact(email, phone):
                raise InvalidInputError(INVALID_CONTACT_MSG)

            customer = self._customers.get(customer_id)
            if customer is None:
                raise NotFoundError(
                    f"Couldn't update a customer with id={customer_id}. Customer not found"
                )

            customer.name = name
            customer.email = email
            customer.phone = phone
            self._customers.insert(customer.id, customer)

            logger.info("customer_updated", customer_id=customer_id)
            return customer

    def delete_customer(self, customer_id: int) -> Customer:
        """Remove a customer and return it.

        Interactions referring to the customer are left in place.

        Raises:
            NotFoundError: If no customer has this id.
        """
        with observed(self._metrics, "delete_customer", customer_id=customer_id):
            customer = self._customers.remove(customer_id)
            if customer is None:
                raise NotFoundError(
                    f"couldn't delete a customer with id={customer_id}. Customer not found"
                )
            self._update_gauges()

            logger.info("customer_deleted", customer_id=customer_id)
            return customer

    def search_customers(
        self,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        page_size: int = 10,
        page_number: int = 1,
    ) -> SearchResult[Customer]:
        """Return one page of customers matching every given filter.

        Filters are exact matches; a filter left as None matches everyone.
        Matches are ordered by id. ``page_number`` is 1-based, and a page
        past the last match is empty.

        Raises:
            InvalidInputError: If page_number < 1 or page_size < 0.
        """
        with observed(
            self._metrics,
            "search_customers",
            page_size=page_size,
            page_number=page_number,
        ):
            if page_number < 1:
                raise InvalidInputError(f"page_number must be at least 1, got {page_number}")
            if page_size < 0:
                raise InvalidInputError(f"page_size must not be negative, got {page_size}")

            matches = [
                customer
                for _, customer in self._customers.iter()
                if customer.matches(name=name, email=email, phone=phone)
            ]

            total_items = len(matches)
            start = (page_number - 1) * page_size
            end = min(start + page_size, total_items)
            items = matches[start:end] if start < total_items else []

            return SearchResult(total_items=total_items, items=items)
