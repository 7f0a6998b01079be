import asyncio
import click
from pathlib import Path

from . import __version__
from .completion import OpenAICompletion
from .config import Config
from .quality import QualityAlertEngine, create_quality_metrics, load_scores
from .refinement import (
    DEFAULT_STAGES,
    create_pipeline,
    generate_report,
    pause_pipeline,
    resume_pipeline,
    retry_failed_tasks,
    run_pipeline,
)
from .refinement.io import export_to_csv, load_chapters, load_pipeline, save_pipeline, write_refined_chapters
from .utils.logger import setup_logger
from .utils.progress import PipelineProgressBar, create_progress

@click.group()
@click.option('--config', '-c', type=click.Path(dir_okay=False), default='config.yaml',
              help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool):
    """Novel Refiner - Batch chapter refinement with quality alerts."""
    ctx.ensure_object(dict)

    config_path = Path(config)
    if config_path.exists():
        ctx.obj['config'] = Config.from_yaml(config_path)
    else:
        ctx.obj['config'] = Config()

    log_level = "DEBUG" if verbose else ctx.obj['config'].log_level
    logger = setup_logger(log_level, ctx.obj['config'].log_file)
    ctx.obj['logger'] = logger

    logger.info(f"Novel Refiner v{__version__}")
    if config_path.exists():
        logger.info(f"Config loaded from: {config_path}")

@cli.command()
@click.option('--input', '-i', type=click.Path(exists=True), help='Chapter directory or JSONL file')
@click.option('--output', '-o', type=click.Path(file_okay=False), default='refined', help='Output directory')
@click.option('--stage', '-s', 'stages', multiple=True, type=click.Choice(DEFAULT_STAGES),
              help='Stage to run (repeatable, in order). Defaults to the configured stages')
@click.option('--state', type=click.Path(dir_okay=False), help='Pipeline state file, resumed if it exists')
@click.option('--halt-on-error', is_flag=True, help='Stop the whole pipeline when a stage fails')
@click.option('--no-auto-continue', is_flag=True, help='Pause after each finished chapter')
@click.pass_context
def refine(ctx: click.Context, input: str, output: str, stages: tuple, state: str,
           halt_on_error: bool, no_auto_continue: bool):
    """Run chapters through the refinement stages."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    output_dir = Path(output)
    state_path = Path(state) if state else output_dir / "pipeline.json"

    options = config.refinement.model_copy()
    if stages:
        options.stages = list(stages)
    if halt_on_error:
        options.continue_on_error = False
    if no_auto_continue:
        options.auto_continue = False

    try:
        if state_path.exists():
            logger.info(f"Resuming pipeline from {state_path}")
            ignored = [flag for flag, given in (("--input", input), ("--stage", stages)) if given]
            if ignored:
                logger.warning(
                    f"Ignoring {' and '.join(ignored)}: chapters and stages come from {state_path}. "
                    f"Delete it or pass another --state to start over"
                )
            # A stage that was in flight when the last run died is re-run
            pipeline = resume_pipeline(pause_pipeline(load_pipeline(state_path)))
        elif input:
            pipeline = create_pipeline(load_chapters(Path(input)), options.stages)
        else:
            raise click.UsageError("--input is required unless --state points to an existing pipeline")

        completion = OpenAICompletion(config.completion)

        with create_progress() as progress:
            bar = PipelineProgressBar(progress)

            def on_update(value):
                bar.update(value)
                save_pipeline(value, state_path)

            pipeline = asyncio.run(run_pipeline(
                pipeline,
                completion,
                options=options,
                prompts=config.prompts,
                on_update=on_update,
                on_chunk=bar.chunk,
            ))

        written = write_refined_chapters(pipeline, output_dir)
        export_to_csv(pipeline, output_dir / "results.csv")
        (output_dir / "report.md").write_text(generate_report(pipeline), encoding="utf-8")

        progress_info = pipeline.progress
        logger.success(
            f"Pipeline {pipeline.status}: {len(written)} chapters refined, "
            f"{progress_info.failed} failed ({progress_info.percentage}%)"
        )
    except click.ClickException:
        raise
    except Exception as e:
        logger.error(f"Refinement failed: {e}")
        raise click.ClickException(str(e))

@cli.command()
@click.option('--state', required=True, type=click.Path(exists=True, dir_okay=False), help='Pipeline state file')
@click.pass_context
def report(ctx: click.Context, state: str):
    """Print the Markdown report for a saved pipeline."""
    logger = ctx.obj['logger']
    try:
        click.echo(generate_report(load_pipeline(Path(state))))
    except Exception as e:
        logger.error(f"Report failed: {e}")
        raise click.ClickException(str(e))

@cli.command()
@click.option('--state', required=True, type=click.Path(exists=True, dir_okay=False), help='Pipeline state file')
@click.pass_context
def retry(ctx: click.Context, state: str):
    """Reset failed chapters so the next run re-attempts them."""
    logger = ctx.obj['logger']
    state_path = Path(state)
    try:
        pipeline = load_pipeline(state_path)
        failed = pipeline.progress.failed
        save_pipeline(retry_failed_tasks(pipeline), state_path)
        logger.success(f"Reset {failed} failed tasks to pending")
    except Exception as e:
        logger.error(f"Retry failed: {e}")
        raise click.ClickException(str(e))

@cli.command()
@click.option('--state', required=True, type=click.Path(exists=True, dir_okay=False), help='Pipeline state file')
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=False), help='Output CSV file')
@click.pass_context
def export(ctx: click.Context, state: str, output: str):
    """Export completed chapters to CSV."""
    logger = ctx.obj['logger']
    try:
        rows = export_to_csv(load_pipeline(Path(state)), Path(output))
        logger.success(f"Exported {rows} chapters to {output}")
    except Exception as e:
        logger.error(f"Export failed: {e}")
        raise click.ClickException(str(e))

@cli.command()
@click.option('--input', '-i', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Scores file (.csv or .jsonl) with a chapter column')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the report to this file')
@click.option('--low-score-threshold', type=float, help='Override the low-score threshold')
@click.pass_context
def alerts(ctx: click.Context, input: str, output: str, low_score_threshold: float):
    """Check chapter quality scores for alerts."""
    config = ctx.obj['config']
    logger = ctx.obj['logger']

    engine = QualityAlertEngine(config.alerts)
    if low_score_threshold is not None:
        engine.update_thresholds(low_score_threshold=low_score_threshold)

    try:
        for chapter, scores in load_scores(Path(input)):
            engine.add_metrics(create_quality_metrics(chapter, scores))
    except Exception as e:
        logger.error(f"Could not read scores: {e}")
        raise click.ClickException(str(e))

    text = engine.generate_report()
    click.echo(text)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        logger.info(f"Alert report written to {output}")

def main():
    cli()

if __name__ == '__main__':
    main()
