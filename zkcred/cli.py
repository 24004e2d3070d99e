"""
Command-line interface for credential proofs.

Provides commands to inspect circuit files, generate proofs and verify one
or many proof files.
"""

import json
import logging
import sys
from pathlib import Path

import click

from zkcred import __version__
from zkcred.circuits.batch import BatchItem, BatchVerificationReporter
from zkcred.circuits.config import (
    build_backend,
    build_orchestrator,
    build_registry,
    build_verifier,
    load_settings,
)
from zkcred.circuits.constants import DEFAULT_BATCH_CONCURRENCY
from zkcred.circuits.descriptors import CircuitId
from zkcred.circuits.encoding import CredentialAttributes
from zkcred.circuits.errors import CredentialProofError
from zkcred.circuits.proof_io import (
    dump_proof,
    dump_report,
    load_payload,
    load_public_signals,
)

CIRCUIT_CHOICE = click.Choice([item.value for item in CircuitId], case_sensitive=False)


def _fail(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


def _settings(ctx: click.Context):
    return ctx.obj["settings"]


def _backend(ctx: click.Context):
    backend = ctx.obj.get("backend")
    if backend is None:
        backend = build_backend(_settings(ctx))
        ctx.obj["backend"] = backend
    return backend


def _verification_key(ctx: click.Context, descriptor, vk):
    if vk:
        return Path(vk)
    return build_registry(_settings(ctx)).resolve(descriptor).verification_key


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML config file")
@click.option("--circuits-dir", type=click.Path(file_okay=False), help="Root of circuit directories")
@click.option("--snarkjs", help="snarkjs command (e.g. 'npx snarkjs')")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, config_path, circuits_dir, snarkjs, verbose):
    """
    zkcred - zero-knowledge proofs over identity credentials.

    Generates and verifies Groth16 proofs of license possession and legal age
    without disclosing the underlying attributes.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s"
        )
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(
                config_path, circuits_dir=circuits_dir, snarkjs=snarkjs
            )
        except CredentialProofError as e:
            _fail(str(e))


@main.command()
@click.option("--circuit", type=CIRCUIT_CHOICE, help="Only report this circuit")
@click.pass_context
def status(ctx, circuit):
    """Report which circuit files were found."""
    settings = _settings(ctx)
    registry = build_registry(settings)
    circuits = [CircuitId(circuit)] if circuit else list(CircuitId)
    all_complete = True

    for circuit_id in circuits:
        report = registry.status(settings.descriptor(circuit_id))
        colour = "green" if report.complete else "yellow"
        mark = "✓" if report.complete else "⚠️ "
        click.echo(
            click.style(
                f"{mark} {circuit_id.value}: {report.found}/{report.required} files",
                fg=colour,
            )
        )
        for slot, path in report.resolved.items():
            click.echo(f"    {slot}: {path}")
        if report.missing:
            click.echo(f"    missing: {', '.join(report.missing)}")
        all_complete = all_complete and report.complete

    if not all_complete:
        sys.exit(1)


@main.command()
@click.argument("circuit", type=CIRCUIT_CHOICE)
@click.pass_context
def check(ctx, circuit):
    """Run the witness program once on a sample input."""
    orchestrator = build_orchestrator(_settings(ctx), backend=_backend(ctx))
    try:
        handle = orchestrator.dry_run(circuit)
    except CredentialProofError as e:
        _fail(f"{circuit}: {e}")
    click.echo(
        click.style(
            f"✓ {circuit}: witness computed ({handle.size} bytes, {handle.duration:.2f}s)",
            fg="green",
        )
    )


@main.command()
@click.argument("circuit", type=CIRCUIT_CHOICE)
@click.option("--name", required=True)
@click.option("--surname", required=True)
@click.option("--dob", required=True, help="Date of birth, YYYY-MM-DD")
@click.option("--license", "license_", default="", help="License category (A, B or C)")
@click.option("--expiration", help="License expiration date, YYYY-MM-DD")
@click.option("--age", type=int, help="Age in years (derived from --dob when omitted)")
@click.option("--nonce", help="8-character alphanumeric nonce (random when omitted)")
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    help="Write the proof to this file (.json or .cbor) instead of stdout",
)
@click.pass_context
def prove(ctx, circuit, name, surname, dob, license_, expiration, age, nonce, output):
    """Generate a proof for CIRCUIT from the holder's attributes."""
    attributes = CredentialAttributes(
        name=name,
        surname=surname,
        dob=dob,
        license=license_,
        age=age,
        expiration=expiration,
        nonce=nonce,
    )
    orchestrator = build_orchestrator(_settings(ctx), backend=_backend(ctx))
    attempt = orchestrator.run(circuit, attributes)
    if not attempt.succeeded:
        _fail(f"proof generation failed during {attempt.failed_stage.value}: {attempt.error}")

    generated = attempt.proof
    if output:
        path = dump_proof(generated, output)
        click.echo(click.style(f"✓ Proof saved to: {path}", fg="green"))
        click.echo(f"  {generated.claim_name}: {generated.claim}")
    else:
        click.echo(json.dumps(generated.to_dict(), indent=2))


@main.command()
@click.argument("proof_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--circuit", type=CIRCUIT_CHOICE, default=CircuitId.LICENSE.value, show_default=True)
@click.option("--vk", type=click.Path(exists=True, dir_okay=False), help="Verification key JSON")
@click.option("--public-signals", help="Signals for a bare proof, e.g. '[\"1\"]' or '1'")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def verify(ctx, proof_file, circuit, vk, public_signals, as_json):
    """Verify a single proof file."""
    settings = _settings(ctx)
    descriptor = settings.descriptor(circuit)
    try:
        payload = load_payload(proof_file)
        signals = load_public_signals(public_signals) if public_signals else None
        verifier = build_verifier(settings, backend=_backend(ctx))
        result = verifier.verify_payload(
            payload, _verification_key(ctx, descriptor, vk), descriptor, signals
        )
    except CredentialProofError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif result.valid:
        click.echo(click.style("✓ Proof valid", fg="green"))
        click.echo(f"  {result.claim_name}: {result.claim}")
    else:
        click.echo(click.style("✗ Proof invalid", fg="red"))
    if not result.valid:
        sys.exit(1)


@main.command("batch-verify")
@click.argument("proof_files", nargs=-1, required=True, type=click.Path(dir_okay=False))
@click.option("--circuit", type=CIRCUIT_CHOICE, default=CircuitId.LICENSE.value, show_default=True)
@click.option("--vk", type=click.Path(exists=True, dir_okay=False), help="Verification key JSON")
@click.option("--concurrency", type=click.IntRange(min=1), default=DEFAULT_BATCH_CONCURRENCY, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    help="Also write the JSON report to this file",
)
@click.pass_context
def batch_verify(ctx, proof_files, circuit, vk, concurrency, as_json, output):
    """Verify several proof files and report aggregate results."""
    settings = _settings(ctx)
    descriptor = settings.descriptor(circuit)
    try:
        verification_key = _verification_key(ctx, descriptor, vk)
    except CredentialProofError as e:
        _fail(str(e))

    items = [BatchItem(path=Path(proof_file), label=proof_file) for proof_file in proof_files]
    reporter = BatchVerificationReporter(
        build_verifier(settings, backend=_backend(ctx)),
        verification_key,
        descriptor,
        max_concurrency=concurrency,
    )
    report = reporter.verify_all(items)
    if output:
        path = dump_report(report.to_dict(), output)
        if not as_json:
            click.echo(click.style(f"✓ Report saved to: {path}", fg="green"))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for item in report.items:
            if item.valid:
                click.echo(click.style(f"✓ {item.label}", fg="green"))
            else:
                detail = f" ({item.error_kind}: {item.error})" if item.errored else ""
                click.echo(click.style(f"✗ {item.label}{detail}", fg="red"))
        click.echo(
            f"\n  Total: {report.total}  Valid: {report.valid}  Invalid: {report.invalid}"
        )
        click.echo(
            f"  Time: {report.total_time_ms:.1f}ms total, {report.mean_time_ms:.1f}ms mean"
        )
    if report.invalid:
        sys.exit(1)


if __name__ == "__main__":
    main()
