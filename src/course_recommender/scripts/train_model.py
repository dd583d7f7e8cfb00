import argparse
import sys

from course_recommender.data.sources import CsvDataSource
from course_recommender.scripts.run_pipeline import run_pipeline
from course_recommender.utils.config import Settings


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Train the course recommendation model from CSV exports.")
    parser.add_argument("--data-dir", help="Directory holding enrollments.csv, users.csv and courses.csv")
    parser.add_argument("--iterations", type=int, default=600)
    parser.add_argument("--num-features", type=int, default=50)
    parser.add_argument("--sample-user", help="Log this user's recommendations after training")
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    data_dir = args.data_dir or settings.data_dir

    _, result = run_pipeline(
        CsvDataSource(data_dir),
        settings=settings,
        sample_user=args.sample_user,
        iterations=args.iterations,
        num_features=args.num_features,
    )
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
