from aquascope.annotations import (
    AquascopeAnnotations,
    BoundariesAnnotations,
    InterpAnnotations,
    PathMatcher,
    StepperAnnotations,
    parse_annotations,
)

SOURCE_EXAMPLE = (
    "#fn main() {\n"
    "let x = 1;`(focus,paths:x,rxpaths:y)`\n"
    "`[]`let y = 2;`{}`\n"
    "#}"
)


def test_parse_annotations():
    cleaned, annot = parse_annotations(SOURCE_EXAMPLE)
    assert cleaned == "fn main() {\nlet x = 1;\nlet y = 2;\n}"
    assert annot == AquascopeAnnotations(
        hidden_lines=[1, 4],
        interp=InterpAnnotations(state_locations=[23]),
        stepper=StepperAnnotations(
            focused_lines=[2],
            focused_paths={2: [PathMatcher.literal("x"), PathMatcher.regex("y")]},
        ),
        boundaries=BoundariesAnnotations(focused_lines=[3]),
    )


def test_to_json_of_example():
    _, annot = parse_annotations(SOURCE_EXAMPLE)
    assert annot.to_json() == {
        "hidden_lines": [1, 4],
        "interp": {"state_locations": [23]},
        "stepper": {
            "focused_lines": [2],
            "focused_paths": {
                "2": [
                    {"type": "Literal", "value": "x"},
                    {"type": "Regex", "value": "y"},
                ]
            },
        },
        "boundaries": {"focused_lines": [3]},
    }


def test_path_matcher_json():
    assert PathMatcher.literal("a").to_json() == {"type": "Literal", "value": "a"}
    assert PathMatcher.regex("b.*").to_json() == {"type": "Regex", "value": "b.*"}


def test_plain_code_unchanged():
    code = "fn main() {\n    let x = 1;\n}"
    cleaned, annot = parse_annotations(code)
    assert cleaned == code
    assert annot == AquascopeAnnotations()


def test_escaped_hash_is_kept():
    cleaned, annot = parse_annotations("\\#[derive(Debug)]\nstruct S;")
    assert cleaned == "#[derive(Debug)]\nstruct S;"
    assert annot.hidden_lines == []


def test_empty_code():
    cleaned, annot = parse_annotations("")
    assert cleaned == ""
    assert annot == AquascopeAnnotations()


def test_trailing_newline_dropped():
    cleaned, _ = parse_annotations("a\nb\n")
    assert cleaned == "a\nb"


def test_multiple_interp_markers_on_one_line():
    cleaned, annot = parse_annotations("ab`[]`cd`[]`e")
    assert cleaned == "abcde"
    assert annot.interp.state_locations == [2, 4]


def test_stepper_without_focus_has_no_focused_line():
    cleaned, annot = parse_annotations("let a = 1;`(paths:a)`")
    assert cleaned == "let a = 1;"
    assert annot.stepper.focused_lines == []
    assert annot.stepper.focused_paths == {1: [PathMatcher.literal("a")]}


def test_stepper_focus_only():
    _, annot = parse_annotations("x\ny`(focus)`")
    assert annot.stepper.focused_lines == [2]
    assert annot.stepper.focused_paths == {}


def test_state_locations_count_bytes():
    _, annot = parse_annotations("é`[]`")
    assert annot.interp.state_locations == [len("é".encode("utf-8"))]