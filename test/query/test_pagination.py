import asyncio
import base64
import math
from datetime import date

import pytest

from hypequery import PaginationSession
from hypequery.exceptions import CursorDecodeError, ValidationError
from hypequery.query.pagination import CursorStack, decode_cursor, encode_cursor


def ids(result):
    return [row["id"] for row in result.data]


def test_cursor_codec():
    cursor = encode_cursor({"id": 3, "created_at": date(2024, 1, 2)})
    assert decode_cursor(cursor) == {"id": 3, "created_at": "2024-01-02"}
    assert base64.b64decode(cursor).decode() == '{"id":3,"created_at":"2024-01-02"}'


@pytest.mark.parametrize(
    "cursor", ["!!!", base64.b64encode(b"not json").decode(), base64.b64encode(b"[1]").decode()]
)
def test_malformed_cursor(cursor):
    with pytest.raises(CursorDecodeError):
        decode_cursor(cursor)


def test_cursor_stack_drops_forward_history():
    stack = CursorStack()
    for c in ("a", "b", "c"):
        stack.push_after(c)
    stack.rewind_before("b")
    assert stack.position == 0
    stack.push_after("x")
    assert stack.stack == ["a", "x"]
    assert stack.position == 1


def test_first_page(paged, paging_client):
    result = asyncio.run(paged.first_page(3))
    assert ids(result) == [1, 2, 3]
    assert paging_client.queries[-1] == (
        "SELECT id, name FROM test_table ORDER BY id ASC LIMIT 4"
    )
    info = result.page_info
    assert info.has_next_page
    assert not info.has_previous_page
    assert decode_cursor(info.start_cursor) == {"id": 1}
    assert decode_cursor(info.end_cursor) == {"id": 3}
    assert info.page_size == 3


def test_forward_then_backward(paged, paging_client):
    session = PaginationSession()

    async def walk():
        first = await paged.paginate(3, session=session)
        second = await paged.paginate(3, after=first.page_info.end_cursor, session=session)
        third = await paged.paginate(3, after=second.page_info.end_cursor, session=session)
        back = await paged.paginate(3, before=third.page_info.start_cursor, session=session)
        return first, second, third, back

    first, second, third, back = asyncio.run(walk())
    assert ids(second) == [4, 5, 6]
    assert second.page_info.has_next_page and second.page_info.has_previous_page
    assert ids(third) == [7, 8, 9]
    assert ids(back) == [4, 5, 6]
    assert back.page_info.has_next_page
    assert back.page_info.has_previous_page
    assert paging_client.queries[-1] == (
        "SELECT id, name FROM test_table WHERE id < 7 ORDER BY id DESC LIMIT 4"
    )
    assert "test_table" in session


def test_backward_to_first_page(paged):
    session = PaginationSession()

    async def walk():
        first = await paged.paginate(3, session=session)
        second = await paged.paginate(3, after=first.page_info.end_cursor, session=session)
        return await paged.paginate(3, before=second.page_info.start_cursor, session=session)

    back = asyncio.run(walk())
    assert ids(back) == [1, 2, 3]
    assert back.page_info.has_next_page
    assert not back.page_info.has_previous_page


def test_last_page(paged):
    cursor = encode_cursor({"id": 9})
    result = asyncio.run(paged.paginate(3, after=cursor))
    assert ids(result) == [10]
    assert not result.page_info.has_next_page
    assert result.page_info.has_previous_page


def test_empty_page(paged):
    result = asyncio.run(paged.paginate(3, after=encode_cursor({"id": 10})))
    assert result.data == []
    assert result.page_info.start_cursor is None
    assert result.page_info.end_cursor is None
    assert not result.page_info.has_next_page


def test_descending_order(paged, paging_client):
    async def walk():
        first = await paged.paginate(3, order_by=[("id", "desc")])
        second = await paged.paginate(
            3, after=first.page_info.end_cursor, order_by=[("id", "desc")]
        )
        return first, second

    first, second = asyncio.run(walk())
    assert ids(first) == [10, 9, 8]
    assert ids(second) == [7, 6, 5]
    assert "WHERE id < 8 ORDER BY id DESC" in paging_client.queries[-1]


def test_builder_order_is_used(paged, paging_client):
    result = asyncio.run(paged.order_by("id", "DESC").first_page(2))
    assert ids(result) == [10, 9]


@pytest.mark.parametrize("page_size", [1, 3, 4, 5, 10, 20])
def test_iterate_pages_covers_all_rows(paged, page_size):
    async def collect():
        return [page async for page in paged.iterate_pages(page_size)]

    pages = asyncio.run(collect())
    assert len(pages) == max(1, math.ceil(10 / page_size))
    assert [i for page in pages for i in ids(page)] == list(range(1, 11))
    assert not pages[-1].page_info.has_next_page


def test_iterate_pages_empty_table(paged, paging_client):
    paging_client.rows = []

    async def collect():
        return [page async for page in paged.iterate_pages(5)]

    pages = asyncio.run(collect())
    assert len(pages) == 1
    assert pages[0].data == []


def test_paginate_argument_checks(paged):
    cursor = encode_cursor({"id": 1})
    with pytest.raises(ValidationError):
        asyncio.run(paged.paginate(0))
    with pytest.raises(ValidationError):
        asyncio.run(paged.paginate(3, after=cursor, before=cursor))
    with pytest.raises(CursorDecodeError):
        asyncio.run(paged.paginate(3, after="%%%"))
    with pytest.raises(CursorDecodeError):
        asyncio.run(paged.paginate(3, after=encode_cursor({"name": "x"})))


def test_sessions_are_independent(paged):
    one, two = PaginationSession(), PaginationSession()
    asyncio.run(paged.paginate(3, after=encode_cursor({"id": 3}), session=one))
    assert "test_table" in one
    assert "test_table" not in two
    one.reset()
    assert "test_table" not in one


def test_paginate_does_not_change_builder(paged):
    asyncio.run(paged.paginate(3, after=encode_cursor({"id": 3})))
    assert paged.to_sql() == "SELECT id, name FROM test_table"
