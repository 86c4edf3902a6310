from retailhub.services.invitation_service import parse_invitation_csv


def test_parse_detects_dutch_headers():
    csv_data = (
        "Bedrijfsnaam,Contactpersoon,E-mail,Telefoon\n"
        "Kapsalon Knip,Anna Jansen,ANNA@knip.nl,0612345678\n"
        "Bakkerij Brood,,info@brood.nl,\n"
    )
    rows, errors = parse_invitation_csv(csv_data)

    assert errors == []
    assert rows[0] == {
        "row": 2,
        "email": "anna@knip.nl",
        "business_name": "Kapsalon Knip",
        "contact_name": "Anna Jansen",
        "phone": "0612345678",
    }
    assert rows[1]["contact_name"] is None
    assert rows[1]["phone"] is None


def test_parse_english_headers_with_name_column():
    csv_data = "email,company,name\nfoo@bar.nl,Foo BV,Foo\n"
    rows, errors = parse_invitation_csv(csv_data)
    assert errors == []
    assert rows[0]["business_name"] == "Foo BV"
    assert rows[0]["contact_name"] == "Foo"


def test_invalid_rows_are_reported_with_line_numbers():
    csv_data = "email,bedrijf\nok@shop.nl,Shop\nnot-an-email,Bad\n,Missing\n"
    rows, errors = parse_invitation_csv(csv_data)

    assert [r["email"] for r in rows] == ["ok@shop.nl"]
    assert [e["row"] for e in errors] == [3, 4]
    assert errors[0]["email"] == "not-an-email"


def test_missing_email_column_and_empty_input():
    rows, errors = parse_invitation_csv("bedrijf,telefoon\nShop,0101234567\n")
    assert rows == []
    assert errors == [{"row": 1, "error": "No email column found in header"}]

    rows, errors = parse_invitation_csv("   \n")
    assert rows == []
    assert errors[0]["error"] == "CSV is empty"
