"""
Output functions for the DICE model.

Creates CSV files and PDF plots of model results in timestamped directories.
Quantities are gathered from the model through observers, so every named
quantity of every component is available without the writers knowing the
model layout.
"""

import os
import csv
import json
import shutil
from datetime import datetime
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

from autodiff import value_of
from observer import Observer, SeriesCollector


def create_output_directory(run_name, base_dir=None):
    """
    Create timestamped output directory.

    Parameters
    ----------
    run_name : str
        Name of the model run
    base_dir : str, optional
        Parent directory (default: ./data/output)

    Returns
    -------
    str
        Path to created output directory

    Notes
    -----
    Directory format: {base_dir}/{run_name}_YYYYMMDD-HHMMSS
    """
    if base_dir is None:
        base_dir = os.path.join('data', 'output')
    timestamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    output_dir = os.path.join(base_dir, f'{run_name}_{timestamp}')
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


def collect_results(model):
    """
    Gather every quantity of the model as whole series.

    Returns
    -------
    dict
        Quantity name -> ndarray over the horizon, plus 't' (time index) and
        'year' (calendar year)
    """
    collector = SeriesCollector()
    model.observe(collector)
    results = collector.results
    results['t'] = np.arange(model.horizon)
    results['year'] = model.global_params.years()
    return results


class CSVOutputObserver(Observer):
    """Look up a single quantity at a single time step for one CSV cell."""

    def __init__(self):
        self.var = None
        self.t = 0
        self.cell = None

    def want(self, name):
        return name == self.var, False, self.t

    def observe_value(self, name, value):
        self.cell = value_of(value)
        return False


def write_results_csv(model, output_dir, columns=None, filename='results.csv'):
    """
    Write model quantities to CSV file, one row per time step.

    Parameters
    ----------
    model : DICEModel
        Evaluated model
    output_dir : str
        Directory to write CSV file
    columns : list of str, optional
        Quantities to write, in order. 't' and 'year' are always available.
        None writes 't', 'year' and every model quantity.
    filename : str
        Name of CSV file

    Returns
    -------
    str
        Path to created CSV file

    Raises
    ------
    ValueError
        If a column names no quantity of the model
    """
    if columns is None:
        columns = ['t', 'year'] + model.names()

    csv_path = os.path.join(output_dir, filename)
    observer = CSVOutputObserver()
    model.compute_all()

    with open(csv_path, 'w', newline='') as csvfile:
        writer = csv.writer(csvfile, quoting=csv.QUOTE_NONNUMERIC)

        # Write header
        writer.writerow(columns)

        for t in range(model.horizon):
            observer.t = t
            row = []
            for name in columns:
                if name == 't':
                    row.append(t)
                elif name == 'year':
                    row.append(int(model.global_params.year(t)))
                else:
                    observer.var = name
                    if model.observe(observer, compute=False):
                        raise ValueError(f"variable '{name}' not found")
                    row.append(observer.cell)
            writer.writerow(row)

    return csv_path


def plot_results_pdf(results, output_dir, filename='plots.pdf', title='DICE Model Results'):
    """
    Create PDF with time series plots of all variables.

    Parameters
    ----------
    results : dict
        Results dictionary from collect_results()
    output_dir : str
        Directory to write PDF file
    filename : str
        Name of PDF file
    title : str
        Title printed on every page

    Returns
    -------
    str
        Path to created PDF file

    Notes
    -----
    Creates multi-page PDF with 6 plots per page (2 rows x 3 columns).
    Each plot shows one variable vs calendar year.
    """
    pdf_path = os.path.join(output_dir, filename)

    years = results['year']
    var_names = sorted([k for k in results.keys() if k not in ('t', 'year')])

    with PdfPages(pdf_path) as pdf:
        plots_per_page = 6
        n_vars = len(var_names)

        for page_start in range(0, n_vars, plots_per_page):
            fig, axes = plt.subplots(2, 3, figsize=(11, 8.5))
            fig.suptitle(title, fontsize=14, fontweight='bold')
            axes_flat = axes.flatten()

            page_end = min(page_start + plots_per_page, n_vars)
            for i, var_idx in enumerate(range(page_start, page_end)):
                var_name = var_names[var_idx]
                ax = axes_flat[i]

                ax.plot(years, results[var_name], linewidth=1.5)
                ax.set_xlabel('Year', fontsize=10)
                ax.set_ylabel(var_name, fontsize=10)
                ax.set_title(var_name, fontsize=11, fontweight='bold')
                ax.grid(True, alpha=0.3)
                ax.ticklabel_format(style='scientific', axis='y', scilimits=(-3, 3))

            # Hide unused subplots on last page
            for i in range(page_end - page_start, plots_per_page):
                axes_flat[i].set_visible(False)

            plt.tight_layout()
            pdf.savefig(fig)
            plt.close(fig)

    return pdf_path


def write_optimization_summary(model, history, output_dir, filename='optimization_summary.json'):
    """
    Write final utility, constraint and per-iteration solver results to JSON.

    Parameters
    ----------
    model : DICEModel
        Evaluated model
    history : list of dict
        Output of run_optimization() (may be empty)
    output_dir : str
        Directory to write the summary
    filename : str
        Name of JSON file

    Returns
    -------
    str
        Path to created JSON file
    """
    summary = {
        'run_name': model.config.run_name,
        'utility': model.utility().value,
        'cumulative_emissions': model.cumulative_emissions().value,
        'fosslim': model.global_params.fosslim,
        'decision_variables': model.width,
        's': model.decision_vector().tolist(),
        'iterations': [
            {
                'iteration': entry['iteration'],
                'repetition': entry['repetition'],
                'library': entry['library'],
                'algorithm': entry['algorithm'],
                'limit_cca': entry['limit_cca'],
                'utility': entry['utility'],
                'constraint': entry['constraint'],
                'n_evaluations': entry['result'].n_evaluations,
                'n_failed': entry['result'].n_failed,
                'termination_name': entry['result'].termination_name,
                'termination_description': entry['result'].termination_description,
                'elapsed_time': entry['result'].elapsed_time,
            }
            for entry in history
        ],
    }

    summary_path = os.path.join(output_dir, filename)
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)
    return summary_path


def copy_config_file(config_path, output_dir):
    """Copy the configuration file next to the results."""
    destination = os.path.join(output_dir, os.path.basename(config_path))
    shutil.copy2(config_path, destination)
    return destination


def save_results(model, output_params, history=None, config_path=None, base_dir=None):
    """
    Save model results to CSV (and PDF) in timestamped directory.

    Parameters
    ----------
    model : DICEModel
        Evaluated model
    output_params : OutputParameters
        Output settings
    history : list of dict, optional
        Output of run_optimization()
    config_path : str, optional
        Configuration file to copy into the output directory
    base_dir : str, optional
        Parent of the output directory (default: ./data/output)

    Returns
    -------
    dict
        Dictionary with paths:
        - 'output_dir': path to output directory
        - 'csv_file': path to CSV file
        - 'pdf_file': path to PDF file (None if plots are disabled)
        - 'summary_file': path to optimization summary
        - 'config_file': path to copied configuration (None if not given)

    Raises
    ------
    ValueError
        If the output type is unknown
    """
    if output_params.type != 'csv':
        raise ValueError(f"unknown output type '{output_params.type}'")

    output_dir = create_output_directory(model.config.run_name, base_dir)

    csv_file = write_results_csv(model, output_dir, columns=output_params.columns)

    pdf_file = None
    if output_params.plots:
        pdf_file = plot_results_pdf(collect_results(model), output_dir,
                                    title=f'DICE Model Results: {model.config.run_name}')

    summary_file = write_optimization_summary(model, history or [], output_dir)

    config_file = None
    if config_path is not None:
        config_file = copy_config_file(config_path, output_dir)

    return {
        'output_dir': output_dir,
        'csv_file': csv_file,
        'pdf_file': pdf_file,
        'summary_file': summary_file,
        'config_file': config_file,
    }
