"""End-to-end tests for dependency-array verdicts."""

from hookloop.guards import OBJECT_SPREAD_WARNING
from hookloop.models import Category, Confidence, FindingType, Severity
from hookloop.utils import CONDITIONAL_REASON, TYPE_INFERENCE_REASON


def test_unconditional_update_of_dependency(analyze_source):
    (finding,) = analyze_source(
        """
        function Counter() {
          const [count, setCount] = useState(0);
          useEffect(() => {
            setCount(count + 1);
          }, [count]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-200"
    assert finding.type == FindingType.CONFIRMED_INFINITE_LOOP
    assert finding.category == Category.CRITICAL
    assert finding.severity == Severity.HIGH
    assert finding.confidence == Confidence.HIGH
    assert finding.state_variable == "count"
    assert finding.setter_function == "setCount"
    assert finding.line == 3


def test_layout_effect_uses_its_own_code(analyze_source):
    (finding,) = analyze_source(
        """
        function Measure() {
          const [width, setWidth] = useState(0);
          useLayoutEffect(() => {
            setWidth(width + 1);
          }, [width]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-202"
    assert finding.hook_type == "useLayoutEffect"


def test_update_through_local_function(analyze_source):
    (finding,) = analyze_source(
        """
        function Counter() {
          const [count, setCount] = useState(0);
          function increment() {
            setCount(count + 1);
          }
          useEffect(() => {
            increment();
          }, [count]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-200"
    assert "increment()" in finding.explanation


def test_toggle_guard_is_safe_pattern(analyze_source):
    findings = analyze_source(
        """
        function Session() {
          const [token, setToken] = useState(null);
          useEffect(() => {
            if (!token) setToken(createToken());
          }, [token]);
          return null;
        }
        """
    )
    (finding,) = findings
    assert finding.type == FindingType.SAFE_PATTERN
    assert finding.category == Category.SAFE
    assert finding.severity == Severity.LOW
    assert "toggle" in finding.explanation


def test_deferred_update_is_safe_pattern(analyze_source):
    (finding,) = analyze_source(
        """
        function Clock() {
          const [tick, setTick] = useState(0);
          useEffect(() => {
            const id = setInterval(() => setTick(tick + 1), 1000);
            return () => clearInterval(id);
          }, [tick]);
          return null;
        }
        """
    )
    assert finding.type == FindingType.SAFE_PATTERN
    assert "asynchronously" in finding.explanation


def test_unrecognised_guard_is_potential(analyze_source):
    (finding,) = analyze_source(
        """
        function Counter() {
          const [count, setCount] = useState(0);
          useEffect(() => {
            if (count < 10) setCount(count + 1);
          }, [count]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-501"
    assert finding.type == FindingType.POTENTIAL_ISSUE
    assert finding.category == Category.WARNING
    assert finding.severity == Severity.MEDIUM
    assert finding.confidence == Confidence.MEDIUM
    assert finding.explanation.endswith(f"because {CONDITIONAL_REASON}.")


def test_object_spread_guard(analyze_source):
    (finding,) = analyze_source(
        """
        function Profile({ id }) {
          const [user, setUser] = useState({ id: null });
          useEffect(() => {
            if (user.id !== id) setUser({ ...user, id });
          }, [user, id]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-410"
    assert finding.category == Category.PERFORMANCE
    assert finding.type == FindingType.POTENTIAL_ISSUE
    assert finding.confidence == Confidence.MEDIUM
    assert finding.explanation.startswith(OBJECT_SPREAD_WARNING.format(state="user"))


def test_unstable_object_dependency_with_update(analyze_source):
    (finding,) = analyze_source(
        """
        function Search() {
          const [data, setData] = useState(null);
          const options = { limit: 10 };
          useEffect(() => {
            setData(load(options));
          }, [options]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-400"
    assert finding.type == FindingType.CONFIRMED_INFINITE_LOOP
    assert finding.problematic_dependency == "options"
    assert finding.setter_function == "setData"
    assert finding.confidence == Confidence.HIGH


def test_unstable_array_dependency_without_update(analyze_source):
    (finding,) = analyze_source(
        """
        function Logger() {
          const list = [1, 2];
          useEffect(() => {
            console.log(list);
          }, [list]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-401"
    assert finding.type == FindingType.POTENTIAL_ISSUE
    assert finding.category == Category.PERFORMANCE
    assert finding.severity == Severity.LOW
    assert finding.confidence == Confidence.MEDIUM


def test_inferred_call_result_is_downgraded(analyze_source):
    (finding,) = analyze_source(
        """
        function Report() {
          const [rows, setRows] = useState([]);
          const query = buildQuery();
          useEffect(() => {
            setRows([]);
          }, [query]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-403"
    assert finding.type == FindingType.CONFIRMED_INFINITE_LOOP
    assert finding.confidence == Confidence.MEDIUM
    assert TYPE_INFERENCE_REASON in finding.explanation


def test_configured_stable_call_result_is_not_reported(analyze_source):
    findings = analyze_source(
        """
        function Report() {
          const [rows, setRows] = useState([]);
          const query = buildQuery();
          useEffect(() => {
            setRows([]);
          }, [query]);
          return null;
        }
        """,
        stable_hooks=["buildQuery"],
    )
    assert findings == []


def test_use_callback_function_dependency(analyze_source):
    (finding,) = analyze_source(
        """
        function Form() {
          const format = (value) => value.trim();
          const submit = useCallback(() => format(''), [format]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-406"
    assert finding.hook_type == "useCallback"


def test_memo_without_dependency_array(analyze_source):
    (finding,) = analyze_source(
        """
        function Table({ rows }) {
          const sorted = useMemo(() => rows.slice().sort());
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-500"
    assert finding.category == Category.PERFORMANCE
    assert finding.confidence == Confidence.HIGH


def test_memo_modifying_its_dependency(analyze_source):
    (finding,) = analyze_source(
        """
        function Tally() {
          const [count, setCount] = useState(0);
          const next = useMemo(() => {
            setCount(count + 1);
            return count;
          }, [count]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-420"
    assert finding.category == Category.WARNING
    assert finding.confidence == Confidence.MEDIUM


def test_memo_functional_update_is_not_reported(analyze_source):
    findings = analyze_source(
        """
        function Tally() {
          const [count, setCount] = useState(0);
          const next = useMemo(() => {
            setCount(c => c + 1);
            return count;
          }, [count]);
          return null;
        }
        """
    )
    assert findings == []


def test_memo_with_safe_guard_is_not_reported(analyze_source):
    findings = analyze_source(
        """
        function Tally({ target }) {
          const [count, setCount] = useState(0);
          const sync = useCallback(() => {
            if (count !== target) setCount(target);
          }, [count, target]);
          return null;
        }
        """
    )
    assert findings == []


def test_memo_with_unrecognised_guard_is_reported(analyze_source):
    (finding,) = analyze_source(
        """
        function Tally() {
          const [count, setCount] = useState(0);
          const clamp = useCallback(() => {
            if (count > 5) setCount(0);
          }, [count]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-420"


def test_bare_setter_call_under_negation_is_potential(analyze_source):
    (finding,) = analyze_source(
        """
        function Session() {
          const [token, setToken] = useState(undefined);
          useEffect(() => {
            if (!token) {
              setToken();
            }
          }, [token]);
          return null;
        }
        """
    )
    assert finding.error_code == "RLD-501"
    assert finding.type == FindingType.POTENTIAL_ISSUE
