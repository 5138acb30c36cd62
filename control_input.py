"""
External data for model quantities.

The optional `control_input` configuration section maps quantity names to
input files:

    "control_input": {
        "s": {"format": "csv", "filename": "data/input/savings.csv", "column": 1}
    }

Each entry is read before the first evaluation and injected into the model,
overwriting the computed or configured values of that quantity.
"""

import os

import pandas as pd


def read_csv_column(filename, column):
    """
    Read one column of a CSV file with a header row.

    Parameters
    ----------
    filename : str
        Path to the CSV file
    column : int or str
        Column position (0-based) or header name

    Returns
    -------
    ndarray
        Column values as floats
    """
    if not os.path.exists(filename):
        raise FileNotFoundError(f"control input file not found: {filename}")
    df = pd.read_csv(filename)
    if isinstance(column, int):
        if not 0 <= column < len(df.columns):
            raise ValueError(f"column {column} out of range in {filename} "
                             f"({len(df.columns)} columns)")
        series = df.iloc[:, column]
    else:
        if column not in df.columns:
            raise ValueError(f"column '{column}' not found in {filename}")
        series = df[column]
    return series.to_numpy(dtype=float)


def load_control_input(model, control_input):
    """
    Inject external data into model quantities.

    Parameters
    ----------
    model : DICEModel
        Model to inject into
    control_input : dict or None
        Quantity name -> {format, filename, column}

    Raises
    ------
    ValueError
        If an input format is unknown or a file has fewer rows than the
        horizon (extra rows are ignored)
    FileNotFoundError
        If an input file does not exist
    KeyError
        If the model has no quantity of that name
    """
    if not control_input:
        return

    for name, spec in control_input.items():
        input_format = spec.get('format', 'csv')
        if input_format != 'csv':
            raise ValueError(f"unknown control input format '{input_format}'")
        values = read_csv_column(spec['filename'], spec.get('column', 0))
        # Rows beyond the horizon are ignored
        if len(values) < model.horizon:
            raise ValueError(f"{spec['filename']} has {len(values)} rows for '{name}', "
                             f"the horizon needs {model.horizon}")
        values = values[:model.horizon]
        model.inject(name, values)
        print(f"Loaded {name} from {spec['filename']} ({len(values)} values)")
