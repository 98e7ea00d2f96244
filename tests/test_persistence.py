import pytest

from salesync.models.schemas.sales import SoldItem
from salesync.services.sync.persistence import chunked, flush_sold_items
from salesync.services.sync.providers.lightspeed import parse_sale_to_items

from fakes import InMemorySoldItemStore
from factories import USER_ID, make_line, make_sale


def _items(count, start=0):
    return [SoldItem(sale_line_id=str(i), sale_id="s") for i in range(start, start + count)]


async def test_rows_are_committed_in_sequential_batches(sold_items):
    messages = []

    written = await flush_sold_items(sold_items, USER_ID, _items(950), on_progress=messages.append, batch_size=400)

    assert written == 950
    assert [len(batch) for batch in sold_items.commits] == [400, 400, 150]
    assert messages == ["Saved 400 items...", "Saved 800 items...", "Saved 950 items..."]


async def test_progress_includes_rows_saved_earlier_in_the_run(sold_items):
    messages = []

    await flush_sold_items(sold_items, USER_ID, _items(3), on_progress=messages.append, offset_count=1000, batch_size=400)

    assert messages == ["Saved 1003 items..."]


async def test_empty_flush_is_a_no_op(sold_items):
    assert await flush_sold_items(sold_items, USER_ID, []) == 0
    assert sold_items.commits == []


async def test_payload_leaves_synced_at_to_the_store(sold_items):
    await flush_sold_items(sold_items, USER_ID, _items(1), batch_size=400)

    assert "synced_at" not in sold_items.commits[0][0]


async def test_same_line_twice_keeps_one_row_with_latest_values(sold_items):
    await flush_sold_items(sold_items, USER_ID, [SoldItem(sale_line_id="1", unit_price=5)], batch_size=400)
    await flush_sold_items(sold_items, USER_ID, [SoldItem(sale_line_id="1", unit_price=7)], batch_size=400)

    stored = await sold_items.load_sold_items(USER_ID)
    assert len(stored) == 1
    assert stored[0].unit_price == 7


async def test_resighted_sale_in_one_flush_writes_each_line_once(sold_items):
    rows = (
        parse_sale_to_items(make_sale("1", "2024-05-01T10:00:00+00:00", [make_line("11")]))
        + parse_sale_to_items(make_sale("1", "2024-05-02T10:00:00+00:00", [make_line("11", unitPrice="12.50")]))
        + parse_sale_to_items(make_sale("2", "2024-05-01T09:00:00+00:00", [
            make_line("", saleLineID=None),
            make_line("", saleLineID=None),
        ]))
    )
    messages = []

    written = await flush_sold_items(sold_items, USER_ID, rows, on_progress=messages.append, batch_size=400)

    assert written == 1
    assert [row["sale_line_id"] for row in sold_items.commits[0]] == ["11"]
    assert sold_items.commits[0][0]["unit_price"] == 12.5
    assert messages == ["Saved 1 items..."]


async def test_failed_batch_aborts_and_keeps_earlier_batches():
    store = InMemorySoldItemStore(fail_on_commit=2)

    with pytest.raises(RuntimeError):
        await flush_sold_items(store, USER_ID, _items(900), batch_size=400)

    assert len(store.commits) == 1
    assert len(store.rows) == 400


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunked(_items(1), 0)
