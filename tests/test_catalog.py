"""Tests for catalog and membership administration."""

import pytest

from library_circulation.errors import (
    ActiveLoansExistError,
    DuplicateRecordError,
    EntityNotFoundError,
    InvalidMemberNumberError,
    InvalidRecordError,
)
from library_circulation.models import MemberRole, MemberStatus


class TestBooks:
    def test_register_book(self, catalog):
        book = catalog.register_book(
            {
                "isbn": "978-0-13-468547-9",
                "title": "Effective Java",
                "author": "Joshua Bloch",
                "publisher": "Addison-Wesley",
                "publication_year": 2018,
                "total_copies": 3,
                "available_copies": 3,
            }
        )
        assert book.isbn == "9780134685479"
        stored = catalog.get_book("978-0134685479")
        assert (stored.isbn, stored.title, stored.total_copies) == (book.isbn, book.title, 3)

    def test_register_duplicate_isbn(self, catalog, make_book):
        book = make_book()
        with pytest.raises(DuplicateRecordError):
            make_book(isbn=book.isbn)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"total_copies": 0, "available_copies": 0},
            {"total_copies": 1, "available_copies": 2},
            {"title": ""},
            {"isbn": "12345"},
        ],
    )
    def test_register_invalid_book(self, make_book, overrides):
        with pytest.raises(InvalidRecordError) as exc_info:
            make_book(**overrides)
        assert exc_info.value.errors

    def test_get_unknown_book(self, catalog):
        with pytest.raises(EntityNotFoundError):
            catalog.get_book("9789999999999")
        # A malformed ISBN cannot be in the catalog either
        with pytest.raises(EntityNotFoundError):
            catalog.get_book("not-an-isbn")

    def test_update_metadata(self, catalog, make_book):
        book = make_book()
        updated = catalog.update_book(book.isbn, {"title": "Second Edition"})
        assert updated.title == "Second Edition"
        assert catalog.get_book(book.isbn).title == "Second Edition"

    def test_adding_copies_keeps_loans_accounted_for(
        self, catalog, coordinator, make_book, make_member
    ):
        book = make_book(total_copies=2)
        coordinator.create_loan(book.isbn, make_member().id, 14)

        updated = catalog.update_book(book.isbn, {"total_copies": 5})

        assert updated.total_copies == 5
        assert updated.available_copies == 4

    def test_total_cannot_drop_below_copies_on_loan(
        self, catalog, coordinator, make_book, make_member
    ):
        book = make_book(total_copies=3)
        for _ in range(2):
            coordinator.create_loan(book.isbn, make_member().id, 14)

        with pytest.raises(InvalidRecordError, match="copies on loan"):
            catalog.update_book(book.isbn, {"total_copies": 1})

        assert catalog.get_book(book.isbn).total_copies == 3

    def test_update_unknown_book(self, catalog):
        with pytest.raises(EntityNotFoundError):
            catalog.update_book("9789999999999", {"title": "Nope"})

    def test_delete_book(self, catalog, make_book):
        book = make_book()
        catalog.delete_book(book.isbn)
        with pytest.raises(EntityNotFoundError):
            catalog.get_book(book.isbn)

    def test_delete_book_with_active_loans(self, catalog, coordinator, make_book, make_member):
        book = make_book()
        loan = coordinator.create_loan(book.isbn, make_member().id, 14)

        with pytest.raises(ActiveLoansExistError) as exc_info:
            catalog.delete_book(book.isbn)
        assert exc_info.value.active_loans == 1

        coordinator.return_loan(loan.id)
        # Returned loans keep the book in the catalog as loan history
        with pytest.raises(InvalidRecordError, match="loan history"):
            catalog.delete_book(book.isbn)
        assert catalog.get_book(book.isbn).isbn == book.isbn


class TestMembers:
    def test_register_member(self, catalog):
        member = catalog.register_member(
            {
                "member_number": "20240015",
                "name": "Grace Hopper",
                "email": "grace@example.com",
                "role": "librarian",
            }
        )
        assert member.id.startswith("member_")
        assert member.status == MemberStatus.ACTIVE
        assert member.role == MemberRole.LIBRARIAN
        assert catalog.get_member(member.id) == member
        assert catalog.get_member_by_number("20240015").id == member.id

    @pytest.mark.parametrize("number", ["12AB", "10-01", "abc"])
    def test_member_number_must_be_numeric(self, catalog, number):
        with pytest.raises(InvalidMemberNumberError) as exc_info:
            catalog.register_member(
                {"member_number": number, "name": "Grace Hopper", "email": "grace@example.com"}
            )
        assert exc_info.value.member_number == number

    def test_duplicate_member_number(self, catalog, make_member):
        member = make_member()
        with pytest.raises(DuplicateRecordError):
            make_member(member_number=member.member_number, email="someone.else@example.com")

    def test_duplicate_email(self, catalog, make_member):
        member = make_member()
        with pytest.raises(DuplicateRecordError):
            make_member(email=member.email)

    def test_invalid_email(self, catalog):
        with pytest.raises(InvalidRecordError):
            catalog.register_member(
                {"member_number": "1001", "name": "Grace Hopper", "email": "not-an-email"}
            )

    def test_status_changes(self, catalog, make_member):
        member = make_member()

        assert catalog.deactivate_member(member.id).status == MemberStatus.INACTIVE
        assert catalog.suspend_member(member.id).status == MemberStatus.SUSPENDED
        assert catalog.activate_member(member.id).status == MemberStatus.ACTIVE

    def test_status_change_for_unknown_member(self, catalog):
        with pytest.raises(EntityNotFoundError):
            catalog.deactivate_member("member_doesnotexist")

    def test_list_members(self, catalog, make_member):
        active = make_member(name="Alan Turing")
        inactive = make_member(name="Barbara Liskov")
        catalog.deactivate_member(inactive.id)

        assert [m.id for m in catalog.list_members()] == [active.id, inactive.id]
        assert [m.id for m in catalog.list_members(MemberStatus.INACTIVE)] == [inactive.id]

    def test_unknown_member_number(self, catalog):
        with pytest.raises(EntityNotFoundError):
            catalog.get_member_by_number("999999")
