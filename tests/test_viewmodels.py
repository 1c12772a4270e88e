import pytest

import preferences as prefs
from models import Item, ItemDetails
from viewmodels import (
    HomeModel, ItemDetailsModel, ItemEditModel, ItemEntryModel, SettingsModel, validate_input,
)


def details(**overrides):
    fields = dict(name="Drill", price="89.5", quantity="4")
    fields.update(overrides)
    return ItemDetails(**fields)


@pytest.mark.parametrize("form, expected", [
    (details(), True),
    (details(name=" "), False),
    (details(price=""), False),
    (details(quantity=""), False),
    (details(price="-1"), False),
    (details(price="nan"), False),
    (details(price="inf"), False),
    (details(price="-inf"), False),
    (details(quantity="-3"), False),
    (details(provider_email="orders@tools.com"), True),
    (details(provider_email="orders@tools"), False),
    (details(provider_phone="79161234567"), True),
    (details(provider_phone="12345"), False),
])
def test_validate_input(form, expected):
    assert validate_input(form) is expected


def test_entry_saves_valid_item(repository, preferences):
    model = ItemEntryModel(repository, preferences)
    assert model.item_ui_state.is_entry_valid is False

    model.update_ui_state(details(provider_name="Tools Ltd", provider_email="orders@tools.com"))
    assert model.item_ui_state.is_entry_valid is True
    item_id = model.save_item()

    assert repository.get_item(item_id) == Item(
        id=item_id, name="Drill", price=89.5, quantity=4,
        provider_name="Tools Ltd", provider_email="orders@tools.com",
    )


def test_entry_ignores_invalid_item(repository, preferences):
    model = ItemEntryModel(repository, preferences)
    model.update_ui_state(details(name=""))
    assert model.item_ui_state.is_entry_valid is False
    assert model.save_item() is None
    assert repository.get_all_items() == []


def test_entry_rejects_non_finite_price(repository, preferences):
    model = ItemEntryModel(repository, preferences)
    model.update_ui_state(details(price="nan"))
    assert model.item_ui_state.is_entry_valid is False
    assert model.save_item() is None
    assert repository.get_all_items() == []


def test_unparsable_numbers_become_zero(repository, preferences):
    model = ItemEntryModel(repository, preferences)
    model.update_ui_state(details(price="abc", quantity="many"))
    item = repository.get_item(model.save_item())
    assert (item.price, item.quantity) == (0.0, 0)


def test_entry_prefills_supplier_defaults(repository, preferences):
    settings = SettingsModel(preferences)
    settings.provider_default = "Tools Ltd"
    settings.email_default = "orders@tools.com"
    settings.phone_default = "79161234567"

    assert ItemEntryModel(repository, preferences).item_ui_state.item_details.provider_name == ""

    settings.fill_default = True
    form = ItemEntryModel(repository, preferences).item_ui_state.item_details
    assert (form.provider_name, form.provider_email, form.provider_phone) == (
        "Tools Ltd", "orders@tools.com", "79161234567",
    )


def test_edit_updates_item(repository):
    item_id = repository.insert_item(Item(name="Drill", price=89.5, quantity=4))
    model = ItemEditModel(repository, item_id)
    assert model.item_ui_state.is_entry_valid is True
    assert model.item_ui_state.item_details.price == "89.5"

    model.update_ui_state(details(id=item_id, name="Hammer drill", price="120"))
    assert model.update_item() is True
    assert repository.get_item(item_id).name == "Hammer drill"
    assert repository.get_item(item_id).price == 120.0


def test_edit_unknown_item(repository):
    with pytest.raises(ValueError):
        ItemEditModel(repository, 999)


@pytest.fixture
def make_details_model(repository, preferences, exporter):
    def factory(item):
        item_id = repository.insert_item(item)
        return ItemDetailsModel(repository, preferences, exporter, item_id)
    return factory


def test_sell_decrements_by_one(repository, make_details_model):
    model = make_details_model(Item(name="Drill", price=1.0, quantity=2))
    model.reduce_quantity_by_one()
    assert repository.get_item(model.item_id).quantity == 1
    assert model.ui_state.out_of_stock is False

    model.reduce_quantity_by_one()
    assert repository.get_item(model.item_id).quantity == 0
    assert model.ui_state.out_of_stock is True


def test_sell_at_zero_is_a_no_op(repository, make_details_model):
    model = make_details_model(Item(name="Drill", price=1.0, quantity=0))
    assert model.ui_state.out_of_stock is True
    model.reduce_quantity_by_one()
    assert repository.get_item(model.item_id).quantity == 0


def test_delete_item(repository, make_details_model):
    model = make_details_model(Item(name="Drill", price=1.0, quantity=0))
    model.delete_item()
    assert HomeModel(repository).items() == []


def test_hide_masks_supplier_fields(repository, preferences, make_details_model):
    model = make_details_model(Item(name="Drill", price=1234.5, quantity=3,
                                    provider_name="Tools Ltd",
                                    provider_email="orders@tools.com",
                                    provider_phone="79161234567"))
    shown = dict(model.display_fields())
    assert shown["Provider name"] == "Tools Ltd"
    assert shown["Price"] == "$1,234.50"

    SettingsModel(preferences).hide_sensitive = True
    shown = dict(model.display_fields())
    assert shown["Provider name"] == "*********"
    assert shown["Provider email"] == "*" * len("orders@tools.com")
    assert shown["Provider phone"] == "*" * 11
    assert shown["Item"] == "Drill"

    stored = repository.get_item(model.item_id)
    assert stored.provider_name == "Tools Ltd"
    assert stored.provider_email == "orders@tools.com"


def test_share_text(preferences, make_details_model):
    model = make_details_model(Item(name="Drill", price=89.5, quantity=4,
                                    provider_name="Tools Ltd"))
    assert model.can_share is True
    assert model.share_text().splitlines() == [
        "Item Name: Drill",
        "Price: 89.5",
        "In Stock: 4",
        "Provider: Tools Ltd",
        "Email: ",
        "Phone: ",
    ]

    SettingsModel(preferences).forbid_share = True
    assert model.can_share is False
    with pytest.raises(PermissionError):
        model.share_text()


def test_export_from_details(tmp_path, exporter, make_details_model):
    model = make_details_model(Item(name="Drill", price=89.5, quantity=4))
    path = model.export_to(str(tmp_path))
    assert exporter.decrypt_export(path) == model.item.to_dict()


def test_settings_round_trip(preferences):
    settings = SettingsModel(preferences)
    assert settings.fill_default is False
    assert settings.provider_default == ""
    settings.forbid_share = True
    settings.phone_default = "79161234567"
    assert preferences.get_boolean(prefs.FORBID_SHARE) is True
    assert SettingsModel(preferences).phone_default == "79161234567"
