"""
Tests for the uor-kernel command line
"""

import json

import pytest
from click.testing import CliRunner

from uor_kernel.cli import main

PAIRS = ["--pair", "0", "1", "--pair", "2", "5", "--pair", "10", "200"]


@pytest.fixture
def runner():
    return CliRunner()


def run_json(runner, args):
    result = runner.invoke(main, args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestCommands:
    def test_verify(self, runner):
        out = run_json(runner, ["verify"])
        assert out["verified"] is True
        assert out["checked"] == 256
        assert out["bits"] == 8

    def test_classify(self, runner):
        out = run_json(runner, ["classify", "128"])
        assert out["component"] == "partition:ExteriorSet"

    def test_classify_out_of_range(self, runner):
        result = runner.invoke(main, ["classify", "256"])
        assert result.exit_code == 2

    def test_resolve(self, runner):
        out = run_json(runner, ["resolve", "300"])
        assert out["canonicalIri"] == "https://uor.foundation/u/U282C"

    def test_partition(self, runner):
        out = run_json(runner, ["partition"])
        assert out["total"] == 256
        assert out["partition:cardinalities"]["partition:IrreducibleSet"] == 126

    def test_triad(self, runner):
        out = run_json(runner, ["triad", "7"])
        assert out["totalStratum"] == 3
        assert out["iri"] == "https://uor.foundation/u/U2807"

    def test_derive(self, runner):
        out = run_json(runner, ["derive", "xor(0xaa, 0x55)"])
        assert out["canonicalTerm"] == "xor(0x55,0xaa)"
        assert out["resultValue"] == 255

    def test_derive_with_receipt(self, runner):
        out = run_json(runner, ["derive", "--receipt", "succ(41)"])
        assert out["derivation"]["resultValue"] == 42
        assert out["receipt"]["selfVerified"] is True

    def test_derive_bad_term(self, runner):
        result = runner.invoke(main, ["derive", "rotate(1)"])
        assert result.exit_code == 1
        assert "rotate" in result.output

    def test_correlate(self, runner):
        out = run_json(runner, ["correlate", "42", "213"])
        assert out["fidelity"] == 0.0

    def test_cid(self, runner):
        a = run_json(runner, ["cid", '{"b": 1, "a": 2}'])
        b = run_json(runner, ["cid", '{"a": 2, "b": 1}'])
        assert a["cid"] == b["cid"]
        assert a["canonical"] == '{"a":2,"b":1}'

    def test_state(self, runner):
        out = run_json(runner, ["state", "128"])
        assert out["state:exitCondition"]["state:isPhaseBoundary"] is True

    def test_quantum_option(self, runner):
        out = run_json(runner, ["-q", "1", "triad", "257"])
        assert out["stratum"] == [1, 1]

    def test_morph_project(self, runner):
        out = run_json(runner, ["-q", "1", "morph", "4660", "--to", "0"])
        assert out["transform"]["targetValue"] == 0x34
        assert out["transform"]["lossless"] is False
        assert out["receipt"]["selfVerified"] is True

    def test_morph_embed(self, runner):
        out = run_json(runner, ["morph", "42", "--to", "1"])
        assert out["transform"]["kind"] == "Embedding"

    def test_base_iri_option(self, runner):
        out = run_json(runner, ["--base-iri", "https://example.org/u/", "triad", "0"])
        assert out["iri"] == "https://example.org/u/U2800"


class TestCertCommands:
    def test_involution(self, runner):
        out = run_json(runner, ["cert", "involution", "neg"])
        assert out["@type"] == "cert:InvolutionCertificate"
        assert out["exhaustive"] is True

    def test_isometry(self, runner):
        out = run_json(runner, ["cert", "isometry", "42", "43", *PAIRS])
        assert out["@type"] == "cert:IsometryCertificate"
        assert out["shift"] == 1

    def test_isometry_blocked(self, runner):
        result = runner.invoke(main, ["cert", "isometry", "42", "42", *PAIRS])
        assert result.exit_code == 1
        assert json.loads(result.output)["error"] == "BLOCKED"

    def test_isometry_too_few_pairs(self, runner):
        result = runner.invoke(main, ["cert", "isometry", "42", "43", "--pair", "0", "1"])
        assert result.exit_code == 1
        assert "test pairs" in result.output


class TestEmit:
    def test_to_file(self, runner, tmp_path):
        path = tmp_path / "out.jsonld"
        result = runner.invoke(main, ["emit", "-o", str(path), "--value", "3",
                                      "--closure-ops", "not", "--derive", "xor(1, 2)"])
        assert result.exit_code == 0, result.output
        doc = json.loads(path.read_text(encoding="utf-8"))
        values = sorted(n["schema:value"] for n in doc["@graph"] if n["@type"] == "schema:Datum")
        assert values == [3, 252]
        assert doc["@graph"][-1]["@type"] == "derivation:Record"

    def test_to_stdout(self, runner):
        doc = run_json(runner, ["emit", "--value", "1"])
        assert doc["@graph"][0]["@type"] == "proof:CoherenceProof"
