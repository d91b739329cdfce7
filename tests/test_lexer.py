from leptos_mcp.analysis.lexer import mask_source, read_structure, split_top_level


def test_mask_blanks_comments_and_strings_but_keeps_positions():
    source = 'let a = "x.get()"; // y.get()\nlet b = 1;'
    masked = mask_source(source)

    assert len(masked) == len(source)
    assert ".get()" not in masked
    assert masked.startswith('let a = "')
    assert masked.splitlines()[1] == "let b = 1;"


def test_mask_handles_nested_block_comments_and_escapes():
    assert mask_source("/* a /* b */ c */ x").strip() == "x"
    assert "}" not in mask_source('let s = "a\\"}";')
    assert "{" not in mask_source("let s = r#\"a \"quoted\" {\"#;")
    assert "{" not in mask_source("let c = '{';")


def test_lifetimes_are_not_char_literals():
    structure = read_structure("fn first<'a>(x: &'a str) -> &'a str { x }")

    assert structure.balanced
    assert structure.masked == structure.source


def test_unclosed_opener_cuts_at_outermost_open_bracket():
    source = "fn f() { let x = (1, 2;"
    structure = read_structure(source)

    assert not structure.balanced
    assert structure.cut == source.index("{")
    assert structure.reason.startswith("unclosed")


def test_stray_and_mismatched_closers_cut_immediately():
    stray = read_structure("a) b")
    mismatched = read_structure("(]")

    assert stray.cut == 1
    assert "unmatched" in stray.reason
    assert mismatched.cut == 1
    assert not mismatched.balanced


def test_position_is_one_based():
    structure = read_structure("ab\ncd")

    assert structure.position(0) == (1, 1)
    assert structure.position(3) == (2, 1)
    assert structure.position(4) == (2, 2)


def test_split_top_level_skips_nested_brackets_and_closure_pipes():
    source = "f(a, (b, c), |x, y| x + y)"
    structure = read_structure(source)
    close = structure.closing(1)

    parts = [source[start:end] for start, end in split_top_level(structure, 2, close)]

    assert parts == ["a", "(b, c)", "|x, y| x + y"]
