"""
Built-in algorithm library.

Schemas are kept in their JSON record shape so they can be served to the UI
as they are and replaced wholesale by a library file
(FLOWNOTE_LIBRARY_PATH) with the same structure:

    {"<category>": [<schema>, ...], ...}

Arguments that name a column or pick an option are quoted by a flat template;
in a structured call a bare word like `first` would be read as a variable.
"""
from __future__ import annotations

from typing import Any, Dict, List


# ── Sources ──────────────────────────────────────────────────────────────────

LOAD_CSV: Dict[str, Any] = {
    "id": "load_csv",
    "name": "Load CSV",
    "category": "source",
    "description": "Read a CSV file from the dataset folder.",
    "inputs": [],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "filepath", "type": "str", "default": "", "label": "File", "widget": "file", "priority": "critical"},
        {"name": "timeIndex", "type": "str", "default": "", "label": "Time index column", "priority": "critical"},
        {"name": "sep", "type": "str", "default": ",", "label": "Separator"},
        {"name": "encoding", "type": "str", "default": "utf-8", "label": "Encoding"},
    ],
    "template": (
        "{OUTPUT_VAR} = load_csv(filepath='{filepath}', timeIndex='{timeIndex}', sep='{sep}', encoding='{encoding}')\n"
        "{OUTPUT_VAR}.head()"
    ),
}

IMPORT_VARIABLE: Dict[str, Any] = {
    "id": "import_variable",
    "name": "Import Variable",
    "category": "source",
    "description": "Use a DataFrame that already exists in the kernel.",
    "inputs": [],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "variable_name", "type": "str", "default": "", "label": "Variable"},
    ],
}


# ── Column operations ────────────────────────────────────────────────────────

SELECT_COLUMNS: Dict[str, Any] = {
    "id": "select_columns",
    "name": "Select Columns",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "columns", "type": "list", "default": [], "widget": "columns"},
    ],
}

RENAME_COLUMNS: Dict[str, Any] = {
    "id": "rename_columns",
    "name": "Rename Columns",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "columns_map", "type": "dict", "default": {}},
    ],
}

FILTER_ROWS: Dict[str, Any] = {
    "id": "filter_rows",
    "name": "Filter Rows",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "query", "type": "str", "default": "", "priority": "critical"},
    ],
}

SORT_VALUES: Dict[str, Any] = {
    "id": "sort_values",
    "name": "Sort Values",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "by", "type": "list", "default": [], "widget": "columns", "priority": "critical"},
        {"name": "ascending", "type": "bool", "default": True},
    ],
}

DROP_DUPLICATES: Dict[str, Any] = {
    "id": "drop_duplicates",
    "name": "Drop Duplicates",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "subset", "type": "list", "default": [], "widget": "columns"},
        {"name": "keep", "type": "str", "default": "first", "options": ["first", "last"]},
    ],
    "template": "{OUTPUT_VAR} = drop_duplicates({VAR_NAME}, subset={subset}, keep='{keep}')\n{OUTPUT_VAR}.head()",
}

FILL_NA: Dict[str, Any] = {
    "id": "fill_na",
    "name": "Fill Missing Values",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "method", "type": "str", "default": "ffill", "options": ["ffill", "bfill", "value"]},
        {"name": "value", "type": "float", "default": 0},
    ],
    "template": "{OUTPUT_VAR} = fill_na({VAR_NAME}, method='{method}', value={value})\n{OUTPUT_VAR}.head()",
}

ASTYPE: Dict[str, Any] = {
    "id": "astype",
    "name": "Change Column Types",
    "category": "cleaning",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "dtypes", "type": "dict", "default": {}},
    ],
}


# ── Combining ────────────────────────────────────────────────────────────────

MERGE_DFS: Dict[str, Any] = {
    "id": "merge_dfs",
    "name": "Merge",
    "category": "combine",
    "inputs": [{"name": "left", "type": "DataFrame"}, {"name": "right", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "on", "type": "list", "default": [], "widget": "columns", "priority": "critical"},
        {"name": "how", "type": "str", "default": "inner", "options": ["inner", "left", "right", "outer"]},
        {"name": "suffixes", "type": "list", "default": ["_x", "_y"]},
    ],
    "template": (
        "{OUTPUT_VAR} = merge_dfs({left}, {right}, on={on}, how='{how}', suffixes={suffixes})\n"
        "{OUTPUT_VAR}.head()"
    ),
}

CONCAT_DFS: Dict[str, Any] = {
    "id": "concat_dfs",
    "name": "Concatenate",
    "category": "combine",
    "inputs": [{"name": "first", "type": "DataFrame"}, {"name": "second", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "ignore_index", "type": "bool", "default": True},
    ],
}


# ── Analysis and plots ───────────────────────────────────────────────────────

DESCRIBE: Dict[str, Any] = {
    "id": "describe",
    "name": "Describe",
    "category": "analysis",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "df_out", "type": "DataFrame"}],
    "args": [
        {"name": "percentiles", "type": "list", "default": [0.25, 0.5, 0.75]},
    ],
    "template": "{OUTPUT_VAR} = {VAR_NAME}.describe(percentiles={percentiles})\n{OUTPUT_VAR}",
}

TRAIN_TEST_SPLIT: Dict[str, Any] = {
    "id": "train_test_split",
    "name": "Train/Test Split",
    "category": "modeling",
    "imports": ["from sklearn.model_selection import train_test_split"],
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [{"name": "train", "type": "DataFrame"}, {"name": "test", "type": "DataFrame"}],
    "args": [
        {"name": "test_size", "type": "float", "default": 0.2, "min": 0.05, "max": 0.95, "step": 0.05},
        {"name": "random_state", "type": "int", "default": 42},
        {"name": "shuffle", "type": "bool", "default": True},
    ],
}

PLOT_LINE: Dict[str, Any] = {
    "id": "plot_line",
    "name": "Line Plot",
    "category": "plot",
    "inputs": [{"name": "df_in", "type": "DataFrame"}],
    "outputs": [],
    "args": [
        {"name": "x", "type": "str", "default": "", "widget": "column", "priority": "critical"},
        {"name": "y", "type": "list", "default": [], "widget": "columns", "priority": "critical"},
        {"name": "title", "type": "str", "default": ""},
        {"name": "figsize", "type": "list", "default": [10, 4]},
    ],
    "template": "plot_line({VAR_NAME}, x='{x}', y={y}, title='{title}', figsize={figsize})",
}


BUILTIN_LIBRARY: Dict[str, List[Dict[str, Any]]] = {
    "source": [LOAD_CSV, IMPORT_VARIABLE],
    "cleaning": [SELECT_COLUMNS, RENAME_COLUMNS, FILTER_ROWS, SORT_VALUES, DROP_DUPLICATES, FILL_NA, ASTYPE],
    "combine": [MERGE_DFS, CONCAT_DFS],
    "analysis": [DESCRIBE],
    "modeling": [TRAIN_TEST_SPLIT],
    "plot": [PLOT_LINE],
}
