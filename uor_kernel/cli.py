"""Command line entry point: `uor-kernel`."""

import json
import logging
from typing import Any, Optional

import click

from .canonical import canonical_decode, canonical_json, content_address
from .certificates import CertificateIssuer
from .config import Settings
from .correlation import correlate
from .derivation import DerivationEngine
from .errors import CoherenceError, Rejection, UORError
from .jsonld import emit_json
from .morphism import cross_quantum_transform
from .partition import ClosureMode, classify, compute_partition, resolve
from .receipts import derivation_receipt
from .ring import UOR
from .state import state_frame

logger = logging.getLogger(__name__)


def _echo(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _ring(ctx: click.Context) -> UOR:
    return ctx.obj["ring"]


def _in_range(ring: UOR, value: int) -> int:
    if not ring.contains(value):
        raise click.BadParameter(f"{value} is outside [0, {ring.cycle}) for Q{ring.quantum}")
    return value


def _outcome(outcome) -> None:
    _echo(outcome.to_dict())
    if isinstance(outcome, Rejection):
        raise SystemExit(1)


class _Group(click.Group):
    """Turns kernel errors into a one-line message and exit status 1."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except CoherenceError as e:
            click.echo(f"✗ Coherence failed: {e}", err=True)
            raise SystemExit(1)
        except UORError as e:
            raise click.ClickException(str(e))


@click.group(cls=_Group)
@click.option('-q', '--quantum', default=0, type=int,
              help='Quantum level (0=8-bit, 1=16-bit, etc.)')
@click.option('--base-iri', default=None, help='Override the address base IRI')
@click.option('--ceiling', default=None, type=int,
              help='Largest ring enumerated exhaustively')
@click.option('--verbose', is_flag=True, help='Log progress at INFO level')
@click.pass_context
def main(ctx: click.Context, quantum: int, base_iri: Optional[str],
         ceiling: Optional[int], verbose: bool):
    """
    UOR kernel - verified computation over Z/(2^bits)Z.

    Scales from Quantum 0 (8-bit) to arbitrary Quantum N (8×(N+1) bits).
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if quantum < 0:
        raise click.BadParameter("Quantum must be non-negative", param_hint="--quantum")
    settings = Settings.from_env().override(base_iri=base_iri, enumeration_ceiling=ceiling)
    ctx.obj = {"ring": UOR(quantum=quantum, settings=settings), "verbose": verbose}


@main.command()
@click.pass_context
def verify(ctx: click.Context):
    """Run ring self-verification (critical identity and involutions)."""
    ring = _ring(ctx)
    result = ring.verify()
    _echo({
        "quantum": ring.quantum,
        "bits": ring.bits,
        "criticalIdentity": "neg(bnot(x)) = succ(x)",
        **result.to_dict(),
    })
    if not result.verified:
        raise SystemExit(1)


@main.command("classify")
@click.argument('value', type=int)
@click.pass_context
def classify_cmd(ctx: click.Context, value: int):
    """Partition component of VALUE."""
    ring = _ring(ctx)
    _echo({"value": value, **classify(_in_range(ring, value), ring.bits).to_dict()})


@main.command("resolve")
@click.argument('value', type=int)
@click.pass_context
def resolve_cmd(ctx: click.Context, value: int):
    """Normalize, classify and address VALUE with an audit trace."""
    _echo(resolve(_ring(ctx), value).to_dict())


@main.command()
@click.option('--mode', type=click.Choice([m.value for m in ClosureMode]),
              default=ClosureMode.ONE_STEP.value, show_default=True)
@click.option('--seed', 'seeds', multiple=True, type=int,
              help='Seed value (repeatable; default is the whole ring)')
@click.pass_context
def partition(ctx: click.Context, mode: str, seeds: tuple):
    """Cardinalities of the four-way partition."""
    ring = _ring(ctx)
    result = compute_partition(ring, seeds=list(seeds) or None, mode=ClosureMode(mode))
    _echo({"quantum": ring.quantum, "total": result.total, **result.to_dict()})


@main.command()
@click.argument('value', type=int)
@click.pass_context
def triad(ctx: click.Context, value: int):
    """Datum, stratum and spectrum of VALUE."""
    ring = _ring(ctx)
    b = ring.to_bytes(_in_range(ring, value))
    _echo({
        "iri": ring.iri(b),
        "glyph": ring.glyph(b),
        **ring.triad(b).to_dict(),
    })


@main.command()
@click.argument('term')
@click.option('--receipt', is_flag=True, help='Derive under a self-verifying receipt')
@click.pass_context
def derive(ctx: click.Context, term: str, receipt: bool):
    """Canonicalize and evaluate TERM, e.g. 'xor(0x55, 0xaa)'."""
    engine = DerivationEngine(_ring(ctx))
    if receipt:
        receipted = derivation_receipt(engine, term)
        _echo({"derivation": receipted.result.to_dict(), "receipt": receipted.receipt.to_dict()})
    else:
        _echo(engine.derive(term).to_dict())


@main.command("correlate")
@click.argument('a', type=int)
@click.argument('b', type=int)
@click.pass_context
def correlate_cmd(ctx: click.Context, a: int, b: int):
    """Hamming fidelity between A and B."""
    ring = _ring(ctx)
    _echo(correlate(ring, _in_range(ring, a), _in_range(ring, b)).to_dict())


@main.command()
@click.argument('document')
def cid(document: str):
    """Content address of a JSON DOCUMENT's canonical form."""
    value = canonical_decode(document)
    _echo({"cid": content_address(value), "canonical": canonical_json(value)})


@main.command()
@click.argument('value', type=int)
@click.pass_context
def state(ctx: click.Context, value: int):
    """Lifecycle frame of VALUE: entry, exit and transitions."""
    ring = _ring(ctx)
    _echo(state_frame(ring, _in_range(ring, value)).to_dict(ring.settings.base_iri))


@main.command()
@click.argument('value', type=int)
@click.option('--to', 'target', required=True, type=int, help='Target quantum level')
@click.pass_context
def morph(ctx: click.Context, value: int, target: int):
    """Embed or project VALUE from the -q ring into Q(TO)."""
    ring = _ring(ctx)
    receipted = cross_quantum_transform(_in_range(ring, value), ring.quantum, target,
                                        settings=ring.settings)
    _echo({"transform": receipted.result.to_dict(), "receipt": receipted.receipt.to_dict()})


@main.group()
def cert():
    """Issue certificates."""


@cert.command()
@click.argument('op', type=click.Choice(list(UOR.INVOLUTIONS)))
@click.pass_context
def involution(ctx: click.Context, op: str):
    """Certify that OP is self-inverse."""
    _outcome(CertificateIssuer(_ring(ctx)).issue_involution(op))


@cert.command()
@click.argument('source', type=int)
@click.argument('target', type=int)
@click.option('--pair', 'pairs', multiple=True, type=(int, int), required=True,
              help='Test pair A B (3 to 16 of them)')
@click.option('--metric', type=click.Choice(['ring', 'hamming']), default='ring', show_default=True)
@click.pass_context
def isometry(ctx: click.Context, source: int, target: int, pairs: tuple, metric: str):
    """Certify that the shift SOURCE -> TARGET preserves a metric."""
    _outcome(CertificateIssuer(_ring(ctx)).issue_isometry(source, target, list(pairs), metric))


@main.command()
@click.option('-o', '--output', type=click.Path(),
              help='Output file path (default: stdout)')
@click.option('--value', 'values', multiple=True, type=int,
              help='Datum to emit (repeatable; default is the whole ring or a sample)')
@click.option('--closure-ops', multiple=True, type=click.Choice(['not', 'inverse']),
              help='Closure operations (can be specified multiple times)')
@click.option('--mode', type=click.Choice([m.value for m in ClosureMode]),
              default=ClosureMode.ONE_STEP.value, show_default=True)
@click.option('--derive', 'terms', multiple=True, help='Term to derive and include')
@click.pass_context
def emit(ctx: click.Context, output: Optional[str], values: tuple, closure_ops: tuple,
         mode: str, terms: tuple):
    """Emit a graph document of datums and derivations."""
    ring = _ring(ctx)
    engine = DerivationEngine(ring)
    derivations = [engine.derive(t) for t in terms]
    text = emit_json(
        ring,
        values=list(values) or None,
        closure_ops=list(closure_ops),
        closure_mode=ClosureMode(mode),
        derivations=derivations,
    )
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text)
        logger.info("Wrote %s", output)
        if ctx.obj["verbose"]:
            click.echo(f"Written to: {output}")
    else:
        click.echo(text)


if __name__ == "__main__":
    main()
