"""filesign CLI."""

from __future__ import annotations

import json
import logging
import sys
import traceback
from pathlib import Path

import click

from filesign import __version__
from filesign.config import FileSignConfig
from filesign.keys import load_key_files
from filesign.record import SignerInfo
from filesign.signer import FileSigner
from filesign.verifier import FileVerifier, VerificationReport


def handle_error(error: Exception, debug: bool) -> None:
    """Handle errors with structured output.

    Args:
        error: The exception that occurred
        debug: Whether to show full traceback
    """
    if debug:
        traceback.print_exc()
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def parse_key_options(values: tuple[str, ...]) -> dict[str, Path]:
    """Parse repeated ``EMAIL=PATH`` options."""
    keys = {}
    for value in values:
        identity, sep, path = value.partition("=")
        if not sep or not identity or not path:
            raise click.BadParameter(f"Expected EMAIL=PATH, got {value!r}", param_hint="--key")
        keys[identity.strip()] = Path(path.strip())
    return keys


@click.group()
@click.version_option(version=__version__, prog_name="filesign")
@click.option(
    '--config', '-c', 'config_path',
    type=click.Path(exists=True, path_type=Path),
    help='YAML configuration file (default: FILESIGN_* environment variables)',
)
@click.option('--debug', is_flag=True, help='Enable debug mode (debug logging, full tracebacks)')
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool):
    """filesign - multi-signer file attestations."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    try:
        ctx.obj['config'] = (
            FileSignConfig.from_file(config_path) if config_path else FileSignConfig.from_env()
        )
    except (OSError, ValueError, TypeError) as e:
        handle_error(e, debug)


@cli.command()
@click.argument('file', type=click.Path(path_type=Path))
@click.option('--email', '-e', required=True, help='Signer identity (email)')
@click.option(
    '--private-key', '-k', required=True,
    type=click.Path(exists=True, path_type=Path),
    help='PEM private key',
)
@click.option('--passphrase', help='Passphrase for an encrypted private key')
@click.option(
    '--public-key', '-p',
    type=click.Path(exists=True, path_type=Path),
    help='PEM public key to embed for self-contained verification',
)
@click.option('--name', help='Signer full name')
@click.option('--company', help='Signer company')
@click.option('--note', help='Note about this signature')
@click.option('--country', help='Signing location: country')
@click.option('--state', help='Signing location: state')
@click.option('--city', help='Signing location: city')
@click.pass_context
def sign(
    ctx: click.Context,
    file: Path,
    email: str,
    private_key: Path,
    passphrase: str | None,
    public_key: Path | None,
    name: str | None,
    company: str | None,
    note: str | None,
    country: str | None,
    state: str | None,
    city: str | None,
):
    """Sign FILE and add the signature to its sidecar.

    A previous signature by the same email is replaced; other signers'
    signatures are kept.

    Examples:
      filesign sign report.pdf --email me@example.com --private-key me.pem
      filesign sign report.pdf -e me@example.com -k me.pem -p me.pub --note "Approved"
    """
    debug = ctx.obj.get('debug', False)

    try:
        key_pem = private_key.read_bytes()
        key = (key_pem, passphrase) if passphrase else key_pem
        pub_pem = public_key.read_bytes() if public_key else None
    except OSError as e:
        handle_error(e, debug)
        return

    metadata = SignerInfo(
        name=name, company=company, note=note, country=country, state=state, city=city,
    )
    outcome = FileSigner(ctx.obj['config']).sign(file, email, metadata, key, pub_pem)

    if not outcome.ok:
        click.echo(f"❌ Signing failed: {outcome.message}", err=True)
        sys.exit(1)

    action = "Replaced" if outcome.replaced else "Added"
    click.echo(f"✅ {action} signature by {email}")
    click.echo(f"  Sidecar: {outcome.sidecar}")


def _echo_report(report: VerificationReport) -> None:
    click.echo(f"\nVerification Result: {'✅ VERIFIED' if report.verified else '❌ NOT VERIFIED'}")
    click.echo(f"  Signatures: {report.source}")
    click.echo(f"  Signers: {len(report)}")

    for identity, result in report.items():
        mark = '✅' if result.verified else '❌'
        key_note = f" ({result.key_source.value} key)" if result.key_source else ""
        click.echo(f"  {mark} {identity}{key_note}")
        for algorithm, ok in result.digests.items():
            click.echo(f"      {algorithm}: {'match' if ok else 'MISMATCH'}")
        if result.error:
            kind = "checked, failed" if result.checked else "not checked"
            click.echo(f"      ⚠️  {result.error} [{kind}]")

    for error in report.errors:
        click.echo(f"  ⚠️  {error}")


def _run_verify(
    ctx: click.Context,
    file: Path,
    key: tuple[str, ...],
    signatures: str | None,
) -> VerificationReport:
    public_keys = load_key_files(parse_key_options(key))
    verifier = FileVerifier(ctx.obj['config'])
    return verifier.verify(file, public_keys, signatures)


@cli.command()
@click.argument('file', type=click.Path(path_type=Path))
@click.option('--key', '-k', multiple=True, help='Trusted public key as EMAIL=PATH (repeatable)')
@click.option(
    '--signatures', '-s',
    help='Sidecar path or literal signature line/token (default: FILE.jwt.sign)',
)
@click.option('--json', 'as_json', is_flag=True, help='Print the report as JSON')
@click.option('--out', '-o', type=click.Path(path_type=Path), help='Output directory for verification reports')
@click.pass_context
def verify(
    ctx: click.Context,
    file: Path,
    key: tuple[str, ...],
    signatures: str | None,
    as_json: bool,
    out: Path | None,
):
    """Verify every signature on FILE.

    Signers without a --key fall back to the public key embedded in their
    token, which is reported as self-asserted.

    Examples:
      filesign verify report.pdf
      filesign verify report.pdf --key me@example.com=me.pub
      filesign verify report.pdf --signatures other.sign --out ./verification-report
    """
    debug = ctx.obj.get('debug', False)

    try:
        report = _run_verify(ctx, file, key, signatures)

        if out:
            report.write_json(out / "verification_report.json")
            report.write_markdown(out / "verification_report.md")

        if as_json:
            click.echo(json.dumps(report.to_dict(), indent=2, sort_keys=True))
        else:
            _echo_report(report)
            if out:
                click.echo("\nVerification reports written to:")
                click.echo(f"  - JSON: {out / 'verification_report.json'}")
                click.echo(f"  - MD:   {out / 'verification_report.md'}")
    except click.BadParameter:
        raise
    except Exception as e:
        handle_error(e, debug)
        return

    # Exit with error code if not verified
    if not report.verified:
        sys.exit(1)


@cli.command()
@click.argument('file', type=click.Path(path_type=Path))
@click.option('--key', '-k', multiple=True, help='Trusted public key as EMAIL=PATH (repeatable)')
@click.option('--signatures', '-s', help='Sidecar path or literal signature line/token')
@click.pass_context
def check(ctx: click.Context, file: Path, key: tuple[str, ...], signatures: str | None):
    """Exit 0 if FILE has signatures and all of them verify, else 1."""
    debug = ctx.obj.get('debug', False)

    try:
        report = _run_verify(ctx, file, key, signatures)
    except click.BadParameter:
        raise
    except Exception as e:
        handle_error(e, debug)
        return

    click.echo("verified" if report.verified else "not verified")
    sys.exit(0 if report.verified else 1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == '__main__':
    main()
