from leptos_mcp.analysis import analyze


def _component(body: str, name: str = "Demo") -> str:
    return f"#[component]\nfn {name}() -> impl IntoView {{\n{body}\n}}\n"


def _ids(source: str) -> list[str]:
    return [item.rule_id for item in analyze(source).findings]


def _only(source: str, rule_id: str):
    findings = [item for item in analyze(source).findings if item.rule_id == rule_id]
    assert len(findings) == 1
    return findings[0]


def test_eager_read_in_view():
    source = _component("    let (count, set_count) = signal(0);\n    view! { <p>{count.get()}</p> }")

    assert _ids(source) == ["LEP001"]
    finding = _only(source, "LEP001")
    assert finding.line == 4
    assert finding.column == source.splitlines()[3].index("count") + 1
    assert finding.suggested_fix == "{move || count.get()}"


def test_eager_read_in_view_ignores_closures_and_bare_signals():
    source = _component(
        "    let (count, set_count) = signal(0);\n"
        "    view! { <p>{move || count.get()}</p> <p>{count}</p> }"
    )

    assert _ids(source) == []


def test_eager_read_in_attribute_position():
    source = _component("    let (on, set_on) = signal(false);\n    view! { <div class:active=on.get()></div> }")

    finding = _only(source, "LEP001")
    assert finding.suggested_fix == "move || on.get()"


def test_eager_read_inside_iterator_adapter_in_view():
    eager = _component(
        "    let (count, set_count) = signal(0);\n"
        "    let items = vec![1, 2];\n"
        "    view! { <ul>{items.iter().map(|i| count.get() + i).collect_view()}</ul> }"
    )
    wrapped = _component(
        "    let (count, set_count) = signal(0);\n"
        "    let items = vec![1, 2];\n"
        "    view! { <ul>{move || items.iter().map(|i| count.get() + i).collect_view()}</ul> }"
    )

    finding = _only(eager, "LEP001")
    assert finding.line == 5
    assert finding.suggested_fix == "{move || items.iter().map(|i| count.get() + i).collect_view()}"
    assert _ids(wrapped) == []


def test_eager_reads_sharing_one_expression_mention_the_shared_fix():
    source = _component("    let (a, set_a) = signal(0);\n    view! { <p>{a.get() + a.get()}</p> }")
    single = _component("    let (a, set_a) = signal(0);\n    view! { <p>{a.get()}</p> }")

    findings = analyze(source).findings
    assert [item.rule_id for item in findings] == ["LEP001", "LEP001"]
    assert {item.suggested_fix for item in findings} == {"{move || a.get() + a.get()}"}
    assert all("the same wrap also fixes the other 1 read(s)" in item.message for item in findings)
    assert "same wrap" not in _only(single, "LEP001").message


def test_missing_move_capture():
    source = _component("    let (count, set_count) = signal(0);\n    view! { <p>{|| count.get()}</p> }")

    assert _ids(source) == ["LEP002"]
    assert _only(source, "LEP002").suggested_fix == "move || count.get()"


def test_missing_move_capture_ignores_move_and_unrelated_closures():
    source = _component(
        "    let (count, set_count) = signal(0);\n"
        "    let label = || \"static\";\n"
        "    view! { <p>{move || count.get()}</p> <p>{|| 42}</p> }"
    )

    assert _ids(source) == []


def test_resource_fetcher_tracks_source():
    source = (
        "let (id, set_id) = signal(1);\n"
        "let user = Resource::new(move || id.get(), move |_| async move { load(id.get()).await });\n"
    )

    assert _ids(source) == ["LEP003"]
    finding = _only(source, "LEP003")
    assert finding.line == 2
    assert "id.get()" in finding.message


def test_resource_fetcher_using_its_parameter_is_fine():
    source = (
        "let (id, set_id) = signal(1);\n"
        "let user = Resource::new(move || id.get(), |id| async move { load(id).await });\n"
    )

    assert _ids(source) == []


def test_uncontrolled_input_binding():
    source = _component(
        "    let (name, set_name) = signal(String::new());\n"
        '    view! { <input type="text" prop:value=name /> }'
    )

    assert _ids(source) == ["LEP004"]
    finding = _only(source, "LEP004")
    assert finding.severity == "warning"
    assert finding.line == 4
    assert finding.column == source.splitlines()[3].index("<input") + 1
    assert finding.suggested_fix == "on:input=move |ev| set_name.set(event_target_value(&ev))"


def test_paired_or_bound_inputs_are_controlled():
    paired = _component(
        "    let (name, set_name) = signal(String::new());\n"
        '    view! { <input type="text" prop:value=name on:input=move |ev| set_name.set(event_target_value(&ev)) /> }'
    )
    rw = _component(
        "    let name = RwSignal::new(String::new());\n"
        "    view! { <input prop:value=name on:input=move |ev| name.set(event_target_value(&ev)) /> }"
    )
    bound = _component("    let name = RwSignal::new(String::new());\n    view! { <input bind:value=name /> }")
    target = _component(
        "    let (name, set_name) = signal(String::new());\n"
        "    view! { <input prop:value=name on:input:target=move |ev| set_name.set(ev.target().value()) /> }"
    )

    assert _ids(paired) == []
    assert _ids(rw) == []
    assert _ids(bound) == []
    assert _ids(target) == []


def test_raw_markup_injection():
    attribute = _component("    view! { <div inner_html=html_content></div> }")
    method = "element.set_inner_html(&body);\n"

    assert _ids(attribute) == ["LEP005"]
    assert _ids(method) == ["LEP005"]


def test_raw_markup_from_literal_is_reported_too():
    assert _ids(_component('    view! { <div inner_html="<b>hi</b>"></div> }')) == ["LEP005"]
    assert _ids('element.set_inner_html("<br>");\n') == ["LEP005"]


def test_outer_and_adjacent_html_sinks():
    source = 'el.set_outer_html(&body);\nel.insert_adjacent_html("beforeend", &body);\n'

    findings = analyze(source).findings

    assert [(item.rule_id, item.line) for item in findings] == [("LEP005", 1), ("LEP005", 2)]
    assert findings[1].message.startswith("`insert_adjacent_html` inserts `&body` as raw HTML")
    assert findings[1].suggested_fix == "sanitize the markup first, e.g. ammonia::clean(&body)"


def test_raw_markup_getter_without_arguments_is_fine():
    assert _ids("let html = element.inner_html();\n") == []


def test_input_value_attribute():
    unbraced = _component("    view! { <input value=name /> }")
    braced = _component("    view! { <input value={name} /> }")

    assert _ids(unbraced) == ["LEP006"]
    assert _only(unbraced, "LEP006").suggested_fix == "prop:value=name"
    assert _only(braced, "LEP006").suggested_fix == "prop:value={name}"


def test_input_value_literal_or_property_is_fine():
    assert _ids(_component('    view! { <input value="hello" /> }')) == []
    assert _ids(_component("    view! { <input prop:value=name /> }")) == []


def test_deprecated_reactive_constructor():
    source = "let count = create_rw_signal(0);\n"

    assert _ids(source) == ["LEP007"]
    assert _only(source, "LEP007").suggested_fix == "RwSignal::new(0)"
    assert _only("let (a, set_a) = create_signal(0);\n", "LEP007").suggested_fix == "signal(0)"


def test_current_constructors_are_fine():
    assert _ids("let (a, set_a) = signal(0);\nlet memo = Memo::new(move |_| a.get());\n") == []


def test_signal_without_destructuring():
    source = "let count = signal(0);\n"

    assert _ids(source) == ["LEP008"]
    assert _only(source, "LEP008").suggested_fix == "let (count, set_count) = signal(0);"


def test_same_location_findings_follow_catalog_order():
    assert _ids("let count = create_signal(0);\n") == ["LEP007", "LEP008"]


def test_print_instead_of_tracing():
    source = 'println!("count = {}", count);\neprintln!("failed");\n'

    findings = [item for item in analyze(source).findings if item.rule_id == "LEP009"]

    assert [item.line for item in findings] == [1, 2]
    assert findings[0].suggested_fix == 'tracing::info!("count = {}", count)'
    assert findings[1].suggested_fix == 'tracing::error!("failed")'


def test_tracing_macros_are_fine():
    assert _ids('tracing::info!("count = {}", count);\n') == []


def test_missing_component_attribute():
    source = 'fn App() -> impl IntoView {\n    view! { <p>"hi"</p> }\n}\n'

    report = analyze(source)

    assert [item.rule_id for item in report.findings] == ["LEP010"]
    assert report.errors == 1
    assert report.findings[0].severity == "error"
    assert report.findings[0].suggested_fix == "#[component]\nfn App() -> impl IntoView"


def test_component_attribute_present_is_fine():
    assert _ids('#[component]\nfn App() -> impl IntoView {\n    view! { <p>"hi"</p> }\n}\n') == []


def test_server_fn_without_error_type():
    wrong_error = '#[server]\npub async fn save(value: String) -> Result<(), String> {\n    Ok(())\n}\n'
    no_result = "#[server]\npub async fn ping() {\n}\n"

    assert _ids(wrong_error) == ["LEP011"]
    assert _only(wrong_error, "LEP011").suggested_fix == "-> Result<(), ServerFnError>"
    assert _only(no_result, "LEP011").suggested_fix == "-> Result<(), ServerFnError>"


def test_server_fn_with_error_type_is_fine():
    source = "#[server]\npub async fn save(value: String) -> Result<usize, ServerFnError> {\n    Ok(1)\n}\n"

    assert _ids(source) == []


def test_event_handler_called_eagerly():
    source = _component(
        "    let (count, set_count) = signal(0);\n"
        '    view! { <button on:click=set_count.set(0)>"reset"</button> }'
    )

    assert _ids(source) == ["LEP012"]
    assert _only(source, "LEP012").suggested_fix == "on:click=move |_| set_count.set(0)"


def test_event_handler_closures_and_function_values_are_fine():
    source = _component(
        "    let (count, set_count) = signal(0);\n"
        '    view! { <button on:click=move |_| set_count.set(0)>"reset"</button> <button on:click=reset>"x"</button> }'
    )

    assert _ids(source) == []


def test_optional_prop_without_attribute():
    source = "#[component]\nfn Badge(label: Option<String>) -> impl IntoView {\n    view! { <span>{label}</span> }\n}\n"

    assert _ids(source) == ["LEP013"]
    assert _only(source, "LEP013").suggested_fix == "#[prop(optional)] label: Option<String>"


def test_optional_prop_with_attribute_is_fine():
    source = (
        "#[component]\n"
        "fn Badge(#[prop(optional)] label: Option<String>) -> impl IntoView {\n"
        "    view! { <span>{label}</span> }\n"
        "}\n"
    )

    assert _ids(source) == []
