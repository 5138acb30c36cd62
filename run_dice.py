"""
Run the DICE model from a JSON configuration.

Workflow:
1. Load the configuration (with optional command-line overrides)
2. Build the model and inject external control input
3. Run the configured optimization iterations (or a single evaluation)
4. Save results to a timestamped output directory

Usage:
    python run_dice.py <config_file> [--key.path value ...]

Example:
    python run_dice.py config_baseline.json --run_name test --optimization.iterations.0.maxiter 50
"""

import sys
import time
from parameters import load_configuration, parse_overrides
from dice_model import DICEModel
from control_input import load_control_input
from optimization import run_optimization
from output import save_results


def print_header(text):
    """Print formatted section header."""
    print(f"\n{'=' * 80}")
    print(f"  {text}")
    print(f"{'=' * 80}\n")


def print_model_summary(model):
    """Print horizon and decision variable layout."""
    g = model.global_params
    print(f"Run name: {model.config.run_name}")
    print(f"Horizon: {g.timestep_num} steps of {g.timestep_length} years "
          f"({g.start_year} to {g.year(g.timestep_num - 1)})")
    print(f"Climate module: {model.config.climate_type}")
    print(f"Damage module: {model.config.damage_type}")
    print(f"Decision variables: {model.width} "
          f"(savings rate fixed for last {model.config.control.s_fix_steps} steps)")


def main():
    """Main execution function."""
    start_time = time.time()

    if len(sys.argv) < 2:
        print("Usage: python run_dice.py <config_file> [--key.path value ...]")
        print("\nExample:")
        print("  python run_dice.py config_baseline.json")
        print("  python run_dice.py config_baseline.json --parameters.timestep_num 30")
        sys.exit(1)

    config_path = sys.argv[1]
    overrides = parse_overrides(sys.argv[2:])

    config = load_configuration(config_path, overrides)

    print_header("DICE MODEL RUN")
    print(f"Configuration file: {config_path}")
    for key, value in overrides.items():
        print(f"Override: {key} = {value}")

    model = DICEModel(config)
    print_model_summary(model)

    if config.control_input:
        print_header("CONTROL INPUT")
        load_control_input(model, config.control_input)

    history = []
    if config.optimization.iterations:
        print_header("OPTIMIZATION")
        history = run_optimization(model, config.optimization)
    else:
        print_header("EVALUATION")
        model.evaluate(model.decision_vector())

    utility = model.utility().value
    constraint = model.constraint().value

    print_header("SUMMARY")
    print(f"Utility: {utility:.10g}")
    print(f"Cumulative emissions: {constraint + config.global_params.fosslim:.6g} GtC "
          f"(fosslim = {config.global_params.fosslim})")

    if config.output is not None:
        print_header("SAVING RESULTS")
        paths = save_results(model, config.output, history=history, config_path=config_path)
        print(f"Output directory: {paths['output_dir']}")
        print(f"  CSV: {paths['csv_file']}")
        if paths['pdf_file'] is not None:
            print(f"  PDF: {paths['pdf_file']}")
        print(f"  Summary: {paths['summary_file']}")

    print(f"\nTotal time: {time.time() - start_time:.2f} s")
    print_header("DICE MODEL RUN COMPLETE")


if __name__ == '__main__':
    main()
