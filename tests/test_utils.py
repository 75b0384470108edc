import pytest

from op_binding_generator.utils import TemplateRenderer, atomic_write_text, sanitize_identifier, type_spelling


@pytest.mark.parametrize(
    "name, expected",
    [
        ("pkg.sub-mod", "pkg_sub_mod"),
        ("class", "class_"),
        ("1st", "_1st"),
        ("", "_"),
    ],
)
def test_sanitize_identifier(name, expected):
    assert sanitize_identifier(name) == expected


def test_type_spelling():
    assert type_spelling(None) == "None"
    assert type_spelling(int) == "int"
    assert type_spelling(TemplateRenderer) == "op_binding_generator.utils.TemplateRenderer"


def test_user_templates_take_precedence(tmp_path):
    (tmp_path / "sync_body.py.j2").write_text("# custom {{ name }}\n")
    renderer = TemplateRenderer(tmp_path)
    assert renderer.render("sync_body.py.j2", {"name": "op_x"}) == "# custom op_x\n"
    # Package templates are still reachable
    assert "async def settle():" in renderer.render(
        "async_body.py.j2",
        {"pre_call_lines": [], "call_lines": ["result_fut = _call()"], "fallible_launch": False,
         "wrap_ok": True, "encode_ok": True},
    )


def test_missing_template():
    with pytest.raises(RuntimeError, match="Template not found"):
        TemplateRenderer().render("nope.j2", {})


def test_atomic_write_skips_unchanged(tmp_path):
    path = tmp_path / "out" / "file.py"
    assert atomic_write_text(path, "x = 1\r\n")
    assert path.read_text() == "x = 1\n"
    assert not atomic_write_text(path, "x = 1\n")


def test_renderer_filters():
    renderer = TemplateRenderer()
    assert renderer.env.from_string("{{ value|pyrepr }}").render(value="it's") == repr("it's")
    assert "sanitize" not in renderer.env.filters
    assert "len" not in renderer.env.globals
