"""
Catalog and membership administration.

These are the explicit edits that sit next to the loan lifecycle: registering
books and members, changing a book's copy count, removing a book, and moving
a member between statuses. Every edit that touches stock keeps
``available_copies = total_copies - active loans`` intact, and each runs in
its own atomic unit.
"""

import logging

from pydantic import ValidationError

from ..database.book_repository import BookCreateSchema, BookRepository, BookUpdateSchema
from ..database.member_repository import (
    MemberCreateSchema,
    MemberRepository,
    generate_member_id,
)
from ..database.repository import DuplicateError
from ..database.schema import Book as BookDB
from ..database.schema import Member as MemberDB
from ..database.session import DatabaseManager
from ..errors import (
    ActiveLoansExistError,
    DuplicateRecordError,
    EntityNotFoundError,
    InvalidMemberNumberError,
    InvalidRecordError,
)
from ..models.book import Book
from ..models.enums import MemberStatus
from ..models.member import Member
from .coordinator import lookup_isbn

logger = logging.getLogger(__name__)


def _validation_messages(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        messages.append(f"{location}: {item['msg']}" if location else item["msg"])
    return messages


class CatalogService:
    """Registration and administrative edits of books and members."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    # === Books ===

    def register_book(self, data: BookCreateSchema | dict) -> Book:
        """
        Add a title to the catalog.

        Raises:
            InvalidRecordError: Missing fields or inconsistent copy counts
            DuplicateRecordError: The ISBN is already registered
        """
        if isinstance(data, dict):
            try:
                data = BookCreateSchema.model_validate(data)
            except ValidationError as e:
                raise InvalidRecordError(_validation_messages(e)) from e

        def unit(session):
            books = BookRepository(session)
            if books.exists(data.isbn):
                raise DuplicateRecordError("book", data.isbn)
            row = BookDB(
                **data.model_dump(include={
                    "isbn",
                    "title",
                    "author",
                    "publisher",
                    "publication_year",
                    "total_copies",
                    "available_copies",
                })
            )
            try:
                books.save(row)
            except DuplicateError as e:
                raise DuplicateRecordError("book", data.isbn) from e
            return books.to_model(row)

        book = self.db_manager.run_atomic(unit, "register_book")
        logger.info("Book registered: %s (%d copies)", book.isbn, book.total_copies)
        return book

    def update_book(self, isbn: str, data: BookUpdateSchema | dict) -> Book:
        """
        Edit a book's metadata or copy count.

        A change of ``total_copies`` moves ``available_copies`` by the same
        amount, so copies out on loan stay accounted for.

        Raises:
            EntityNotFoundError: Unknown ISBN
            InvalidRecordError: The new total is below the copies on loan
        """
        if isinstance(data, dict):
            try:
                data = BookUpdateSchema.model_validate(data)
            except ValidationError as e:
                raise InvalidRecordError(_validation_messages(e)) from e
        isbn = lookup_isbn(isbn)
        changes = data.model_dump(exclude_unset=True)

        def unit(session):
            books = BookRepository(session)
            row = books.get_for_update(isbn)
            if row is None:
                raise EntityNotFoundError("book", isbn)

            new_total = changes.pop("total_copies", None)
            if new_total is not None:
                on_loan = books.count_active_loans(isbn)
                if new_total < 1:
                    raise InvalidRecordError("Total copies must be greater than 0")
                if new_total < on_loan:
                    raise InvalidRecordError(
                        f"Total copies ({new_total}) cannot be lower than "
                        f"copies on loan ({on_loan})"
                    )
                row.total_copies = new_total
                row.available_copies = new_total - on_loan

            for field, value in changes.items():
                setattr(row, field, value)

            try:
                updated = Book.model_validate(row, from_attributes=True)
            except ValidationError as e:
                raise InvalidRecordError(_validation_messages(e)) from e

            books.save(row)
            return updated

        book = self.db_manager.run_atomic(unit, "update_book")
        logger.info("Book updated: %s", isbn)
        return book

    def delete_book(self, isbn: str) -> None:
        """
        Remove a title from the catalog.

        Raises:
            EntityNotFoundError: Unknown ISBN
            ActiveLoansExistError: Copies are still out on loan
            InvalidRecordError: Returned loans still reference the book
        """
        isbn = lookup_isbn(isbn)

        def unit(session):
            books = BookRepository(session)
            row = books.get_for_update(isbn)
            if row is None:
                raise EntityNotFoundError("book", isbn)
            on_loan = books.count_active_loans(isbn)
            if on_loan:
                raise ActiveLoansExistError(isbn, on_loan)
            if books.count_loans(isbn):
                raise InvalidRecordError(f"Book '{isbn}' has loan history and cannot be deleted")
            books.delete(row)

        self.db_manager.run_atomic(unit, "delete_book")
        logger.info("Book deleted: %s", isbn)

    def get_book(self, isbn: str) -> Book:
        """
        Raises:
            EntityNotFoundError: Unknown ISBN
        """
        isbn = lookup_isbn(isbn)
        with self.db_manager.session_scope() as session:
            book = BookRepository(session).get_by_id(isbn)
        if book is None:
            raise EntityNotFoundError("book", isbn)
        return book

    # === Members ===

    def register_member(self, data: MemberCreateSchema | dict) -> Member:
        """
        Register a new, active member.

        Raises:
            InvalidMemberNumberError: Member number is not purely numeric
            InvalidRecordError: Missing or malformed fields
            DuplicateRecordError: Member number or email already registered
        """
        if isinstance(data, dict):
            number = str(data.get("member_number") or "").strip()
            if number and not number.isdigit():
                raise InvalidMemberNumberError(number)
            try:
                data = MemberCreateSchema.model_validate(data)
            except ValidationError as e:
                raise InvalidRecordError(_validation_messages(e)) from e

        number = data.member_number.strip()
        if not number:
            raise InvalidRecordError("Member number is required")
        if not number.isdigit():
            raise InvalidMemberNumberError(number)

        try:
            member = Member(
                id=generate_member_id(),
                member_number=number,
                name=data.name,
                email=data.email,
                phone=data.phone,
                role=data.role,
                status=MemberStatus.ACTIVE,
            )
        except ValidationError as e:
            raise InvalidRecordError(_validation_messages(e)) from e

        def unit(session):
            members = MemberRepository(session)
            if members.get_by_member_number(number) is not None:
                raise DuplicateRecordError("member", number)
            if members.get_by_unique_field("email", member.email) is not None:
                raise DuplicateRecordError("member", member.email)
            row = MemberDB(**member.model_dump())
            try:
                members.save(row)
            except DuplicateError as e:
                raise DuplicateRecordError("member", number) from e
            return members.to_model(row)

        saved = self.db_manager.run_atomic(unit, "register_member")
        logger.info("Member registered: %s (%s)", saved.id, saved.member_number)
        return saved

    def get_member(self, member_id: str) -> Member:
        """
        Raises:
            EntityNotFoundError: Unknown member ID
        """
        with self.db_manager.session_scope() as session:
            member = MemberRepository(session).get_by_id(member_id)
        if member is None:
            raise EntityNotFoundError("member", member_id)
        return member

    def get_member_by_number(self, member_number: str) -> Member:
        """
        Raises:
            EntityNotFoundError: Unknown member number
        """
        with self.db_manager.session_scope() as session:
            member = MemberRepository(session).get_by_member_number(member_number)
        if member is None:
            raise EntityNotFoundError("member", member_number)
        return member

    def list_members(self, status: MemberStatus | None = None) -> list[Member]:
        with self.db_manager.session_scope() as session:
            members = MemberRepository(session)
            if status is None:
                return members.get_all(order_by="name")
            return members.list_by_status(status)

    def activate_member(self, member_id: str) -> Member:
        return self._set_member_status(member_id, MemberStatus.ACTIVE)

    def deactivate_member(self, member_id: str) -> Member:
        return self._set_member_status(member_id, MemberStatus.INACTIVE)

    def suspend_member(self, member_id: str) -> Member:
        return self._set_member_status(member_id, MemberStatus.SUSPENDED)

    def _set_member_status(self, member_id: str, status: MemberStatus) -> Member:
        def unit(session):
            members = MemberRepository(session)
            row = members.get_row(member_id, for_update=True)
            if row is None:
                raise EntityNotFoundError("member", member_id)
            row.status = status
            members.save(row)
            return members.to_model(row)

        member = self.db_manager.run_atomic(unit, "set_member_status")
        logger.info("Member %s is now %s", member_id, status.value)
        return member
