import pytest

from place_discovery.core.errors import CodecError
from place_discovery.etl import codec


def test_decode_quoted_fields():
    text = 'name,site\nAcme,http://a.example\n"B, C",http://b.example\n'

    rows = codec.decode(text)

    assert rows == [
        {"name": "Acme", "site": "http://a.example"},
        {"name": "B, C", "site": "http://b.example"},
    ]


def test_decode_doubled_quotes_and_embedded_newlines():
    text = 'name,note\r\n"Bar ""Da Gino""","line one\nline two"\r\nPlain,x\r\n'

    rows = codec.decode(text)

    assert rows[0] == {"name": 'Bar "Da Gino"', "note": "line one\nline two"}
    assert rows[1] == {"name": "Plain", "note": "x"}


def test_decode_short_rows_yield_missing_fields():
    rows = codec.decode("name,site,city\nAcme\nBeta,http://b.example\n")

    assert rows == [{"name": "Acme"}, {"name": "Beta", "site": "http://b.example"}]


def test_decode_strips_bom_and_header_padding_and_blank_lines():
    rows = codec.decode("\ufeff name , site\n\nAcme,http://a.example\n\n")

    assert rows == [{"name": "Acme", "site": "http://a.example"}]


@pytest.mark.parametrize("text", [None, "", "name,site\n"])
def test_decode_empty_documents(text):
    assert codec.decode(text) == []


def test_decode_rejects_malformed_quotes():
    with pytest.raises(CodecError):
        codec.decode('name,site\n"Acme"x,http://a.example\n')


def test_encode_header_and_minimal_quoting(make_place):
    record = make_place(name="Pane, Vino & Co", address='Via "Nuova" 2, Roma', website="https://pv.example")

    text = codec.encode([record])
    header, row = text.split("\n")[:2]

    assert header == ",".join(codec.SNAPSHOT_COLUMNS)
    assert row.startswith('"Pane, Vino & Co","Via ""Nuova"" 2, Roma",')
    assert ",https://pv.example," in row
    assert "\r" not in text
    assert text.endswith("\n")


def test_encode_then_decode_reproduces_fields(make_place):
    records = [
        make_place(
            name='Bar "Sport", Centro',
            address="Piazza Navona 1, 00186 Roma RM, Italy",
            lat=41.8992,
            lng=12.4731,
            phone="+39 06 0000",
            website="https://bar.example",
            rating=4.5,
            review_count=120,
            locality="Roma",
            opening_hours=["Monday: 7:00 AM – 8:00 PM", "Tuesday: Closed"],
            categories=["bar", "point_of_interest"],
            source_ids={"google": "ChIJ1"},
        ),
        make_place(name="Forno\nNuovo", address="Via Po 5, Roma"),
    ]

    rows = codec.decode(codec.encode(records))

    assert len(rows) == 2
    first = rows[0]
    assert first["name"] == 'Bar "Sport", Centro'
    assert first["address"] == "Piazza Navona 1, 00186 Roma RM, Italy"
    assert first["city"] == "Roma"
    assert first["category"] == "bar"
    assert first["site"] == "https://bar.example"
    assert first["phone"] == "+39 06 0000"
    assert first["rating"] == "4.5"
    assert first["reviews_count"] == "120"
    assert first["latitude"] == "41.8992"
    assert first["longitude"] == "12.4731"
    assert first["categories"] == "bar; point_of_interest"
    assert first["opening_hours"] == "Monday: 7:00 AM – 8:00 PM; Tuesday: Closed"
    assert first["sources"] == "google"
    assert first["source_ids"] == '{"google":"ChIJ1"}'
    assert first["status"] == "not_contacted"
    assert rows[1]["name"] == "Forno\nNuovo"
    assert rows[1]["phone"] == ""


def test_count_rows_ignores_embedded_newlines(make_place):
    text = codec.encode([make_place(name="A\nB"), make_place(name="C")])
    assert codec.count_rows(text) == 2


def test_to_preview_parses_numbers():
    view = codec.to_preview(
        {
            "name": "Acme",
            "address": "Via Roma 1, Roma",
            "city": "Roma",
            "site": "",
            "phone": "123",
            "rating": "4.2",
            "reviews_count": "7",
            "latitude": "41.9",
            "longitude": "bad",
            "category": "bakery",
        }
    )

    assert view == {
        "name": "Acme",
        "address": "Via Roma 1, Roma",
        "city": "Roma",
        "phone": "123",
        "website": None,
        "rating": 4.2,
        "reviews_count": 7,
        "lat": 41.9,
        "lng": None,
        "categories": ["bakery"],
    }
