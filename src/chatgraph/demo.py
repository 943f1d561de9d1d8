"""Built-in sample export used by the demo flow.

Five short conversations shaped like a real ChatGPT export: two about
JavaScript, two about Python data work and one unrelated. Timestamps are
fixed so demo output is reproducible.
"""

from typing import Any

DEMO_BASE_TIME = 1714521600  # 2024-05-01T00:00:00Z
DAY = 86400

_DEMO_CONVERSATIONS: list[tuple[str, str, int, list[str]]] = [
    (
        "demo-react-hooks",
        "Learning React Hooks",
        0,
        [
            "How do React hooks work in JavaScript? I keep reading about hooks in JavaScript tutorials.",
            "React hooks are JavaScript functions that let components use state. The useState hook "
            "stores state and the useEffect hook runs side effects after rendering.",
            "Can you show a small JavaScript example with useState?",
            "Sure. In JavaScript you write const [count, setCount] = useState(0) inside the component, "
            "and calling setCount updates the state and rerenders the component.",
        ],
    ),
    (
        "demo-array-methods",
        "JavaScript Array Methods",
        2,
        [
            "What are the most useful JavaScript array methods I should know for everyday code?",
            "The essential JavaScript array methods are map for transforming items, filter for "
            "selecting items, reduce for aggregating values, and find for locating a single item.",
            "Is map faster than a plain loop in JavaScript?",
            "For most JavaScript code the difference is tiny. Prefer map and filter for readable code, "
            "and reach for a loop only when profiling shows a real bottleneck.",
        ],
    ),
    (
        "demo-data-pipeline",
        "Python Data Pipelines",
        20,
        [
            "How should I structure a Python data pipeline that cleans CSV data every night?",
            "Split the Python pipeline into small steps: load the data, validate it, clean the data, "
            "then write results. Each step is a function you can test on its own.",
            "Which Python library is best for the data cleaning step?",
            "pandas is the usual Python choice for tabular data. Read the CSV with read_csv, drop "
            "broken rows, and normalise the columns before saving the cleaned data.",
        ],
    ),
    (
        "demo-sales-analysis",
        "Analyzing Sales Data with Python",
        60,
        [
            "I have sales data in a spreadsheet. Can Python help me analyze the data by month?",
            "Yes. Load the spreadsheet into Python with pandas, group the data by month, and sum the "
            "sales column. The resulting table shows monthly totals.",
            "Could I plot the monthly sales data too?",
            "Use matplotlib from Python: call plot on the grouped data and label the axes. A bar chart "
            "of monthly sales makes trends easy to see.",
        ],
    ),
    (
        "demo-sourdough",
        "Sourdough Baking",
        200,
        [
            "My sourdough bread comes out flat. What am I doing wrong with the starter?",
            "A flat loaf usually means the starter was not active enough. Feed the starter twice a day "
            "until it doubles within six hours, then bake.",
            "How long should the dough proof before baking?",
            "Let the dough rise at room temperature for four to six hours, shape it, then proof "
            "overnight in the fridge before baking in a hot oven.",
        ],
    ),
]


def build_linear_conversation(
    conversation_id: str,
    title: str,
    create_time: float,
    turns: list[str],
    system_prompt: str | None = "You are ChatGPT, a helpful assistant.",
) -> dict[str, Any]:
    """Build an export record whose message tree is a single path.

    Turns alternate user/assistant, starting with the user. Like real exports,
    the tree starts at an empty root node followed by a system message.
    """
    root_id = f"{conversation_id}-root"
    mapping: dict[str, Any] = {
        root_id: {"id": root_id, "message": None, "parent": None, "children": []},
    }
    parent_id = root_id
    entries: list[tuple[str, str]] = []
    if system_prompt is not None:
        entries.append(("system", system_prompt))
    entries.extend(("user" if i % 2 == 0 else "assistant", text) for i, text in enumerate(turns))

    for index, (role, text) in enumerate(entries):
        node_id = f"{conversation_id}-node-{index}"
        mapping[node_id] = {
            "id": node_id,
            "message": {
                "id": f"{conversation_id}-msg-{index}",
                "author": {"role": role},
                "content": {"content_type": "text", "parts": [text]},
                "create_time": create_time + index * 60,
            },
            "parent": parent_id,
            "children": [],
        }
        mapping[parent_id]["children"].append(node_id)
        parent_id = node_id

    return {
        "id": conversation_id,
        "title": title,
        "create_time": create_time,
        "update_time": create_time + len(entries) * 60,
        "mapping": mapping,
        "moderation_results": [],
        "current_node": parent_id,
    }


def generate_demo_export() -> list[dict[str, Any]]:
    """Return the demo conversations as export records."""
    return [
        build_linear_conversation(conv_id, title, DEMO_BASE_TIME - days_ago * DAY, turns)
        for conv_id, title, days_ago, turns in _DEMO_CONVERSATIONS
    ]
