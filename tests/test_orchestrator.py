"""End-to-end tests for run_analysis: scenarios, determinism and failure isolation."""

from pathlib import Path

import pytest

from hookloop import orchestrator
from hookloop.context import AnalysisContext, AnalyzerOptions
from hookloop.guards import OBJECT_SPREAD_WARNING
from hookloop.models import Category, FindingType
from hookloop.orchestrator import expand_import_closure, run_analysis
from hookloop.parser import ParseError, parse_file
from hookloop.resolver import PathResolver


def _confirmed(findings):
    return [f for f in findings if f.type == FindingType.CONFIRMED_INFINITE_LOOP]


def test_render_phase_update_is_single_confirmed_finding(analyze_source):
    findings = analyze_source(
        "function C(){ const [c,setC]=useState(0); setC(c+1); return <div/>; }\n"
    )
    assert len(findings) == 1
    assert findings[0].type == FindingType.CONFIRMED_INFINITE_LOOP
    assert findings[0].family == "render-phase"


def test_toggle_guard_around_indirect_setter(analyze_source):
    findings = analyze_source(
        """
        function Session() {
          const [token, setToken] = useState(null);
          const setNewToken = () => setToken(generateToken());
          useEffect(() => { if (!token) setNewToken(); }, [token]);
          return null;
        }
        """
    )
    assert _confirmed(findings) == []


def test_interval_callback_is_deferred(analyze_source):
    findings = analyze_source(
        """
        function Poller() {
          const [x, setX] = useState(0);
          useEffect(() => { setInterval(() => setX(f()), 1000); }, [x]);
          return null;
        }
        """
    )
    assert _confirmed(findings) == []


def test_object_spread_guard_is_not_silently_safe(analyze_source):
    findings = analyze_source(
        """
        function Profile() {
          const [user, setUser] = useState({ id: 0 });
          useEffect(() => { if (user.id !== 5) setUser({...user, id: 5}); }, [user]);
          return null;
        }
        """,
        debug=True,
    )
    (finding,) = findings
    assert finding.category in (Category.PERFORMANCE, Category.WARNING)
    assert finding.type != FindingType.SAFE_PATTERN
    assert finding.explanation.startswith(OBJECT_SPREAD_WARNING.format(state="user"))
    assert finding.debug_info.guard_info["type"] == "object-spread-risk"


def test_random_key_versus_stable_key(analyze_source):
    random_key = analyze_source(
        "function L({ items }) { return items.map(item => <Item key={Math.random()} />); }\n"
    )
    assert [f.error_code for f in random_key] == ["RLD-408"]
    stable_key = analyze_source(
        "function L({ items }) { return items.map(item => <Item key={item.id} />); }\n"
    )
    assert stable_key == []


def test_mutual_recursion_reaches_setter(analyze_source):
    findings = analyze_source(
        """
        function Walker() {
          const [step, setStep] = useState(0);
          function forward(n) { if (n > 0) back(n - 1); }
          function back(n) { forward(n); setStep(n); }
          useEffect(() => {
            forward(step);
          }, [step]);
          return null;
        }
        """
    )
    (finding,) = findings
    assert finding.error_code == "RLD-200"
    assert finding.type == FindingType.CONFIRMED_INFINITE_LOOP
    assert "forward()" in finding.explanation


def test_runs_are_deterministic(temp_dir, write_source):
    files = [
        write_source(
            "A.tsx",
            """
            function A() {
              const [a, setA] = useState(0);
              const opts = { a };
              useEffect(() => { setA(a + 1); }, [a]);
              useEffect(() => { console.log(opts); }, [opts]);
              setA(1);
              return <ul>{[1].map(i => <li key={Math.random()} />)}</ul>;
            }
            """,
        ),
        write_source(
            "B.tsx",
            """
            import { A } from './A';
            function B() {
              const [b, setB] = useState(0);
              useEffect(() => { if (b < 3) setB(b + 1); }, [b]);
              return <A />;
            }
            """,
        ),
    ]

    def run():
        result = run_analysis([parse_file(p) for p in files], AnalyzerOptions(project_root=temp_dir))
        return [f.to_dict() for f in result.findings]

    first = run()
    assert first == run()
    assert len(first) >= 5


def test_findings_sorted_by_file_and_line(temp_dir, write_source):
    b = write_source("b.tsx", "function B() { const [v, setV] = useState(0); setV(1); return null; }\n")
    a = write_source("a.tsx", "function A() { const [v, setV] = useState(0); setV(1); return null; }\n")
    result = run_analysis([parse_file(b), parse_file(a)], AnalyzerOptions(project_root=temp_dir))
    assert [Path(f.file).name for f in result.findings] == ["a.tsx", "b.tsx"]
    assert result.files_analyzed == 2


def test_cycle_completeness(temp_dir, write_source):
    a = write_source("a.ts", "import { c } from './c';\nexport const a = 1;\n")
    b = write_source("b.ts", "import { a } from './a';\nexport const b = 2;\n")
    c = write_source("c.ts", "import { b } from './b';\nexport const c = 3;\n")
    d = write_source("d.ts", "import { a } from './a';\nexport const d = 4;\n")

    result = run_analysis([parse_file(p) for p in (a, b, c, d)], AnalyzerOptions(project_root=temp_dir))
    (cycle,) = result.cycles
    assert set(cycle.files) == {str(a), str(b), str(c)}

    e = write_source("e.ts", "import { f } from './f';\nexport const e = 5;\n")
    f = write_source("f.ts", "export const f = 6;\n")
    acyclic = run_analysis([parse_file(e), parse_file(f)], AnalyzerOptions(project_root=temp_dir))
    assert acyclic.cycles == []


def test_self_import_is_a_cycle(temp_dir, write_source):
    a = write_source("self.ts", "import { x } from './self';\nexport const x = 1;\n")
    result = run_analysis([parse_file(a)], AnalyzerOptions(project_root=temp_dir))
    assert [c.files for c in result.cycles] == [(str(a),)]


def test_failure_in_one_file_is_isolated(temp_dir, write_source, monkeypatch):
    good = write_source("Good.tsx", "function Good() { const [v, setV] = useState(0); setV(1); return null; }\n")
    bad = write_source("Bad.tsx", "function Bad() { return null; }\n")
    original = orchestrator.check_render_phase

    def flaky(parsed, *args):
        if parsed.file.endswith("Bad.tsx"):
            raise RuntimeError("boom")
        return original(parsed, *args)

    monkeypatch.setattr(orchestrator, "check_render_phase", flaky)
    result = run_analysis([parse_file(good), parse_file(bad)], AnalyzerOptions(project_root=temp_dir))
    assert result.failed_files == [str(bad)]
    assert result.files_analyzed == 1
    assert [f.error_code for f in result.findings] == ["RLD-100"]


def test_failing_stage_keeps_earlier_findings(temp_dir, write_source, monkeypatch):
    """Findings from stages that ran before a failure are still reported."""
    path = write_source(
        "Partial.tsx",
        """
        function Partial() {
          const [c, setC] = useState(0);
          setC(c + 1);
          return <ul>{[1].map(i => <li key={Math.random()} />)}</ul>;
        }
        """,
    )

    def broken(*args):
        raise RuntimeError("keys failed")

    monkeypatch.setattr(orchestrator, "check_unstable_keys", broken)
    result = run_analysis([parse_file(path)], AnalyzerOptions(project_root=temp_dir))
    assert [f.error_code for f in result.findings] == ["RLD-100"]
    assert result.failed_files == [str(path)]
    assert result.files_analyzed == 0


def test_cross_file_failure_falls_back_to_single_file(temp_dir, write_source, monkeypatch):
    path = write_source("Good.tsx", "function Good() { const [v, setV] = useState(0); setV(1); return null; }\n")

    def broken(*args, **kwargs):
        raise ValueError("graph failure")

    monkeypatch.setattr(orchestrator, "build_cross_file_facts", broken)
    result = run_analysis([parse_file(path)], AnalyzerOptions(project_root=temp_dir))
    assert result.cycles == []
    assert [f.error_code for f in result.findings] == ["RLD-100"]


def test_type_checker_factory_failure_falls_back(temp_dir, write_source):
    path = write_source("Good.tsx", "function Good() { const [v, setV] = useState(0); setV(1); return null; }\n")

    def factory():
        raise OSError("checker unavailable")

    options = AnalyzerOptions(project_root=temp_dir, strict=True, type_checker_factory=factory)
    assert not AnalysisContext(options).strict
    result = run_analysis([parse_file(path)], options)
    assert [f.error_code for f in result.findings] == ["RLD-100"]


def test_import_closure_respects_limit(temp_dir, write_source):
    write_source("one.ts", "import { two } from './two';\nexport const one = 1;\n")
    write_source("two.ts", "export const two = 2;\n")
    root = write_source("Root.tsx", "import { one } from './one';\nexport const Root = () => null;\n")
    requested = {str(root): parse_file(root)}
    resolver = PathResolver(temp_dir)

    full = expand_import_closure(requested, resolver)
    assert {Path(p).name for p in full} == {"Root.tsx", "one.ts", "two.ts"}

    limited = expand_import_closure(requested, resolver, limit=1)
    assert {Path(p).name for p in limited} == {"Root.tsx", "one.ts"}

    assert expand_import_closure(requested, resolver, limit=0) == requested
    assert expand_import_closure(requested, None) == requested


def test_import_closure_skips_unparseable_files(temp_dir, write_source):
    write_source("one.ts", "export const one = 1;\n")
    root = write_source("Root.tsx", "import { one } from './one';\nexport const Root = () => null;\n")

    def failing_parse(path):
        raise ParseError(path, "syntax error")

    universe = expand_import_closure({str(root): parse_file(root)}, PathResolver(temp_dir), failing_parse)
    assert list(universe) == [str(root)]


@pytest.mark.parametrize("limit", [0, 500])
def test_closure_limit_controls_cross_file_findings(temp_dir, write_source, limit):
    write_source("util.ts", "export function applyUpdate(setValue) { setValue(1); }\n")
    counter = write_source(
        "Counter.tsx",
        """
        import { applyUpdate } from './util';
        function Counter() {
          const [count, setCount] = useState(0);
          useEffect(() => { applyUpdate(setCount); }, [count]);
          return null;
        }
        """,
    )
    options = AnalyzerOptions(project_root=temp_dir, max_import_closure=limit)
    codes = [f.error_code for f in run_analysis([parse_file(counter)], options).findings]
    assert codes == ([] if limit == 0 else ["RLD-300"])
