"""
Run an Analysis Post
====================
Standalone script that runs one post end to end and prints its headline
results.

Usage:
    # Salary prediction from a local CSV
    python run_post.py --post salary --data data/raw/salaries.csv

    # Scrape a table and fit a beta regression
    python run_post.py --post beta --url https://example.org/table --response rate

    # Bayesian linear regression by Gibbs sampling
    python run_post.py --post bayes --data data/raw/bayes_regression.csv --response y

Author: Analysis Posts Team
"""
import argparse
import json

from blogposts.config import get_all_config


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Run one of the analysis posts'
    )

    parser.add_argument(
        '--post', '-p',
        choices=['salary', 'beta', 'bayes'],
        help='Which post to run'
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        help='Path to the input CSV (salary and bayes posts, or a cached table for beta)'
    )

    parser.add_argument(
        '--url', '-u',
        type=str,
        help='Page to scrape for the beta post'
    )

    parser.add_argument(
        '--response', '-r',
        type=str,
        help='Response column (beta and bayes posts)'
    )

    parser.add_argument(
        '--predictors',
        nargs='+',
        help='Predictor columns (beta and bayes posts)'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        help='Directory for models, reports and plots'
    )

    parser.add_argument(
        '--no-plots',
        action='store_true',
        help='Skip writing figures'
    )

    parser.add_argument(
        '--no-rfe',
        action='store_true',
        help='Skip recursive feature elimination (salary post)'
    )

    parser.add_argument(
        '--show-config',
        action='store_true',
        help='Print the configuration and exit'
    )

    return parser.parse_args(argv)


def run_salary(args):
    from blogposts.modeling.salary import run_salary_post

    results = run_salary_post(
        data_path=args.data,
        output_dir=args.output,
        use_rfe=not args.no_rfe,
        make_plots=not args.no_plots
    )
    print("\nModel RMSE (hold-out):")
    for m in sorted(results['metrics'], key=lambda m: m['rmse']):
        print(f"  {m['model_name']:<40} {m['rmse']:>12,.2f}")
    print(f"\nChampion: {results['champion_metrics']['model_name']}")


def run_beta(args):
    from blogposts.modeling.beta_regression import run_beta_post

    results = run_beta_post(
        url=args.url,
        cache_path=args.data,
        response=args.response,
        predictors=args.predictors,
        output_dir=args.output,
        make_plots=not args.no_plots
    )
    print(results['result'].summary())
    print(f"\nPseudo R^2: {results['summary']['pseudo_r2']:.4f}")


def run_bayes(args):
    from blogposts.modeling.bayes_mcmc import run_bayes_post

    results = run_bayes_post(
        data_path=args.data,
        response=args.response,
        predictors=args.predictors,
        output_dir=args.output,
        make_plots=not args.no_plots
    )
    print(results['summary'].to_string(float_format=lambda v: f"{v:.4f}"))
    print("\nConverged:", bool(results['diagnostics']['converged'].all()))


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.show_config:
        print(json.dumps(get_all_config(), indent=2, default=str))
        return

    if args.post is None:
        print("Choose a post with --post {salary,beta,bayes}")
        print("Usage Examples:")
        print("  python run_post.py --post salary --data data/raw/salaries.csv")
        print("  python run_post.py --post beta --url https://example.org/table --response rate")
        print("  python run_post.py --post bayes --data data/raw/bayes_regression.csv --response y")
        return

    runners = {'salary': run_salary, 'beta': run_beta, 'bayes': run_bayes}
    runners[args.post](args)


if __name__ == "__main__":
    main()
