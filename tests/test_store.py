from __future__ import annotations

import threading
from decimal import Decimal

import pytest

from rental_finder.errors import RowNotFoundError, StoreSchemaError
from rental_finder.models import AreaUnit, ListingRecord
from rental_finder.repositories import COLUMNS, CellFormat, ListingStore, MemoryBackend
from rental_finder.repositories.sheets import CENTERED_FORMAT, IMAGE_FORMAT, record_to_row


def make_record(title: str = "Cozy suite", **kw: object) -> ListingRecord:
    data: dict[str, object] = dict(
        source_url="https://vancouver.craigslist.org/van/apa/d/x/1.html",
        title=title,
        property_type="Apartment",
        price_amount=Decimal("1250"),
        price_display="$1,250",
        bedroom_count=2,
        bathroom_count=1,
        area_value=Decimal("850"),
        area_unit=AreaUnit.SQFT,
        address="1234 W 10th Ave",
        image_url="https://images.craigslist.org/a.jpg",
        latitude=49.2627,
        longitude=-123.1207,
        distance_km=9.4312,
    )
    data.update(kw)
    return ListingRecord(**data)  # type: ignore[arg-type]


def col(name: str) -> int:
    return COLUMNS.index(name) + 1


def test_header_written_on_open(backend: MemoryBackend, store: ListingStore) -> None:
    assert backend.header() == list(COLUMNS)
    assert store.row_count() == 0


def test_append_uses_next_free_row(backend: MemoryBackend, store: ListingStore) -> None:
    assert store.append_record(make_record("first")) == 1
    assert store.append_record(make_record("second")) == 2

    # sheet row 2 holds data row 1, directly under the header
    assert "first" in backend.raw(2, col("Name"))[1]
    assert "second" in backend.raw(3, col("Name"))[1]
    assert store.row_count() == 2


def test_append_rereads_extent_after_external_edit(backend: MemoryBackend, store: ListingStore) -> None:
    store.append_record(make_record("first"))
    # Someone types into the sheet by hand
    rng = backend.load_range(3, 3, len(COLUMNS))
    rng.cell(3, col("Price")).value = "$999"
    backend.save(rng)

    assert store.append_record(make_record("second")) == 3


def test_row_cells_and_formats(backend: MemoryBackend, store: ListingStore) -> None:
    store.append_record(make_record('The "best" flat'))

    value, formula, fmt = backend.raw(2, col("Image"))
    assert value is None
    assert formula == '=IMAGE("https://images.craigslist.org/a.jpg")'
    assert fmt == IMAGE_FORMAT
    assert fmt.padding == (10, 10, 10, 10)

    _v, name_formula, _f = backend.raw(2, col("Name"))
    assert name_formula == (
        '=HYPERLINK("https://vancouver.craigslist.org/van/apa/d/x/1.html", "The ""best"" flat")'
    )

    assert backend.raw(2, col("Price"))[0] == "$1,250"
    assert backend.raw(2, col("Size"))[0] == "850 sqft"
    assert backend.raw(2, col("Distance_To_UBC"))[0] == 9.43
    assert backend.raw(2, col("Bedrooms"))[0] == 2
    assert backend.raw(2, col("Price_Per_Person"))[0] == "625.00 $ / person"
    assert backend.raw(2, col("Price_Per_Sqft"))[0] == "1.47 $ / sqft"
    assert backend.raw(2, col("Lat"))[0] == 49.2627
    assert backend.raw(2, col("Lon"))[0] == -123.1207
    assert backend.raw(2, col("Type"))[0] == "Apartment"
    for name in COLUMNS[1:]:
        fmt = backend.raw(2, col(name))[2]
        assert fmt == CENTERED_FORMAT
        assert fmt.wrap_strategy == "WRAP"


def test_row_without_coordinates_has_blank_geo_cells() -> None:
    row = record_to_row(make_record(latitude=None, longitude=None, distance_km=None))
    assert row["Lat"] == "" and row["Lon"] == "" and row["Distance_To_UBC"] == ""


def test_patch_cell_keeps_formatting(backend: MemoryBackend, store: ListingStore) -> None:
    store.append_record(make_record())
    store.patch_cell(1, "Bus_Routes_Nearby", "99, 44")

    value, formula, fmt = backend.raw(2, col("Bus_Routes_Nearby"))
    assert value == "99, 44"
    assert formula is None
    assert fmt == CENTERED_FORMAT


def test_patch_cell_out_of_range(store: ListingStore) -> None:
    store.append_record(make_record())
    with pytest.raises(RowNotFoundError):
        store.patch_cell(2, "Bus_Routes_Nearby", "")
    with pytest.raises(RowNotFoundError):
        store.patch_cell(0, "Bus_Routes_Nearby", "")


def test_patch_unknown_column(store: ListingStore) -> None:
    store.append_record(make_record())
    with pytest.raises(StoreSchemaError):
        store.patch_cell(1, "Parking", "yes")


def test_header_with_extra_columns_is_mapped_by_name() -> None:
    backend = MemoryBackend()
    backend.set_header(list(COLUMNS) + ["Notes"])
    store = ListingStore(backend)
    store.append_record(make_record())
    store.patch_cell(1, "Notes", "call landlord")
    assert backend.raw(2, len(COLUMNS) + 1)[0] == "call landlord"


def test_read_coordinates(store: ListingStore) -> None:
    store.append_record(make_record())
    store.append_record(make_record(latitude=None, longitude=None, distance_km=None))

    rows = store.read_coordinates()
    assert [r.row_index for r in rows] == [1, 2]
    assert rows[0].known and rows[0].latitude == 49.2627
    assert not rows[1].known


def test_concurrent_appends_get_distinct_rows(store: ListingStore) -> None:
    results: list[int] = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        row = store.append_record(make_record(f"listing {i}"))
        with lock:
            results.append(row)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == list(range(1, 11))
    assert store.row_count() == 10


def test_cell_format_api_payload() -> None:
    payload = IMAGE_FORMAT.to_api()
    assert payload == {"wrapStrategy": "WRAP", "padding": {"top": 10, "right": 10, "bottom": 10, "left": 10}}
    assert CellFormat().to_api() == {}
    assert CENTERED_FORMAT.to_api()["textFormat"] == {"fontSize": 12}


def test_exclusive_blocks_other_writers(store: ListingStore) -> None:
    with store.exclusive():
        t = threading.Thread(target=store.append_record, args=(make_record(),))
        t.start()
        t.join(timeout=0.2)
        assert t.is_alive()
        assert store.row_count() == 0
    t.join(timeout=5)
    assert store.row_count() == 1
