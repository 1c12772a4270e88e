import pytest

pytest.importorskip("tkinter")


def test_ui_module_imports():
    import ui

    assert callable(ui.AppWindow)
    assert callable(ui.ItemFormDialog)


def test_entry_point_imports():
    import main

    assert callable(main.main)
