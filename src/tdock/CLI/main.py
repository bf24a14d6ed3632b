"""
Command Line Interface for tdock.
"""
import click

from ..exceptions import TdockError
from ..MANAGERS.docker import Docker
from ..MODELS.image import GenericImage, WaitFor
from ..MODELS.settings import EngineSettings
from ..PARSERS.image_file import ImageFileParser
from ..UTILS.log_config import configure_logging


@click.group()
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='.env file with tdock settings')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--json-logs', is_flag=True, help='Log as JSON lines')
@click.pass_context
def cli(ctx, env_file, verbose, json_logs):
    """
    tdock - disposable containers for tests.

    Starts containers through the docker CLI, waits until they are ready
    and removes them again.
    """
    ctx.ensure_object(dict)
    configure_logging("DEBUG" if verbose else "INFO", json_output=json_logs)
    ctx.obj['settings'] = EngineSettings.from_env(env_file)


def _build_image(descriptor, args, image_file, env, mounts, network, wait_stdout, wait_stderr, timeout):
    """
    Builds the image from an image file or from command line options.
    Options given on the command line extend the image file.
    """
    if image_file:
        try:
            image = ImageFileParser().parse(image_file)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--file') from e
        if descriptor:
            image = image.model_copy(update={"descriptor": descriptor})
    elif descriptor:
        image = GenericImage.new(descriptor)
    else:
        raise click.UsageError("Either DESCRIPTOR or --file is required.")

    if args:
        image = image.with_args(list(args))
    for item in env:
        if '=' not in item:
            raise click.BadParameter(f"{item!r} is not KEY=VALUE", param_hint='--env')
        key, value = item.split('=', 1)
        image = image.with_env_var(key, value)
    for mount in mounts:
        options = {}
        for option in mount.split(','):
            key, _, value = option.partition('=')
            options[key] = value
        image = image.with_mount(options)
    if network:
        image = image.with_network(network)
    if wait_stdout and wait_stderr:
        raise click.UsageError("--wait-stdout and --wait-stderr are mutually exclusive.")
    if wait_stdout:
        image = image.with_wait_for(WaitFor.message_on_stdout(wait_stdout, timeout))
    elif wait_stderr:
        image = image.with_wait_for(WaitFor.message_on_stderr(wait_stderr, timeout))
    return image


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.option('--file', '-f', 'image_file', type=click.Path(exists=True, dir_okay=False), help='YAML image file')
@click.option('--env', '-e', multiple=True, help='Environment variable KEY=VALUE')
@click.option('--mount', multiple=True, help='Mount options key=value,key=value')
@click.option('--network', default=None, help='Network to attach to')
@click.option('--wait-stdout', default=None, help='Wait for this message on stdout')
@click.option('--wait-stderr', default=None, help='Wait for this message on stderr')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True), default=60.0, show_default=True, help='Seconds to wait for the message')
@click.option('--port', '-p', type=int, multiple=True, help='Internal port to resolve')
@click.option('--follow', is_flag=True, help='Tail logs until interrupted')
@click.option('--keep/--no-keep', default=None, help='Stop instead of removing on exit')
@click.argument('descriptor', required=False)
@click.argument('args', nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx, image_file, env, mount, network, wait_stdout, wait_stderr, timeout, port, follow, keep, descriptor, args):
    """Start a container, wait until it is ready and report its ports."""
    image = _build_image(descriptor, args, image_file, env, mount, network, wait_stdout, wait_stderr, timeout)
    settings = ctx.obj['settings']

    with Docker(settings=settings) as docker:
        try:
            container = docker.run(image, keep_containers=keep)
        except TdockError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

        with container:
            click.echo(f"Container {container.id} is ready.")
            if port:
                for internal in port:
                    host = container.get_host_port(internal)
                    click.echo(f"{internal:>6} -> {host if host is not None else 'not published'}")
            else:
                for internal, host in sorted(container.ports().as_dict().items()):
                    click.echo(f"{internal:>6} -> {host}")

            if follow:
                worker = container.run_background_logs(stdout=True, stderr=True)
                click.echo("Following logs... Press Ctrl+C to stop.")
                try:
                    while not worker.join(timeout=1):
                        pass
                except KeyboardInterrupt:
                    click.echo("\nStopping container...")

        click.echo(f"Container {container.id} {container.state.value}.")


@cli.command()
@click.argument('container_id')
@click.pass_context
def ports(ctx, container_id):
    """Show the published ports of an existing container."""
    settings = ctx.obj['settings']
    with Docker(settings=settings) as docker:
        try:
            table = docker.loop.run(docker.runner.inspect(container_id)).get_ports()
        except TdockError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        click.echo(f"{'INTERNAL':>8} {'HOST':>6}")
        for internal, host in sorted(table.as_dict().items()):
            click.echo(f"{internal:>8} {host:>6}")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
