"""
Query server and push-channel dispatcher over a populated tracer.
"""
import unittest

from fastapi.testclient import TestClient

from callprobe import Tracer
from callprobe.server import create_app, handle_action


def _populated_tracer():
    tracer = Tracer()

    @tracer.traced("fetch")
    def fetch(key):
        return {"key": key}

    @tracer.traced("handler")
    def handler(key):
        return fetch(key)

    handler("a")
    handler("b")
    return tracer


class QueryRouteTests(unittest.TestCase):
    def setUp(self):
        self.tracer = _populated_tracer()
        self.client = TestClient(create_app(self.tracer))

    def test_health(self):
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "ok")

    def test_spans_envelope(self):
        r = self.client.get("/remote-debug/spans")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["metadata"]["endpoint"], "/remote-debug/spans")
        self.assertEqual(body["data"]["total"], 4)
        first = body["data"]["spans"][0]
        self.assertIn("startEpochNanos", first)
        self.assertTrue(first["startTime"].endswith("+00:00"))

    def test_spans_filtered_by_function_and_trace(self):
        r = self.client.get("/remote-debug/spans", params={"functionName": "fetch"})
        spans = r.json()["data"]["spans"]
        self.assertEqual([s["name"] for s in spans], ["fetch", "fetch"])

        trace_id = spans[0]["traceId"]
        r = self.client.get("/remote-debug/spans", params={"traceId": trace_id})
        self.assertEqual({s["name"] for s in r.json()["data"]["spans"]}, {"handler", "fetch"})

    def test_spans_limit(self):
        r = self.client.get("/remote-debug/spans", params={"limit": 1})
        data = r.json()["data"]
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["query"]["limit"], 1)

    def test_traces_newest_first(self):
        r = self.client.get("/remote-debug/traces")
        self.assertEqual(r.status_code, 200)
        traces = r.json()
        self.assertEqual(len(traces), 2)
        self.assertGreaterEqual(traces[0]["startTimeMilli"], traces[1]["startTimeMilli"])
        self.assertEqual(traces[0]["type"], "py")
        newest = self.tracer.trace_ids()[0]
        self.assertEqual(traces[0]["traceId"], newest)

    def test_call_tree(self):
        trace_id = self.tracer.trace_ids()[0]
        r = self.client.get(f"/remote-debug/traces/{trace_id}/tree")
        self.assertEqual(r.status_code, 200)
        (root,) = r.json()["data"]["roots"]
        self.assertEqual(root["name"], "handler")
        self.assertEqual([c["name"] for c in root["children"]], ["fetch"])

    def test_call_tree_unknown_trace(self):
        r = self.client.get("/remote-debug/traces/missing/tree")
        self.assertEqual(r.status_code, 404)

    def test_stats(self):
        r = self.client.get("/remote-debug/spans/stats")
        data = r.json()["data"]
        self.assertEqual(data["totalSpans"], 4)
        self.assertEqual(data["totalTraces"], 2)
        self.assertEqual(data["totalFunctions"], 2)
        self.assertIn("averageDurationMs", data)

    def test_clear(self):
        r = self.client.delete("/remote-debug/spans")
        self.assertEqual(r.json()["message"], "Span cache cleared")
        self.assertEqual(self.tracer.spans(), [])
        stats = self.client.get("/remote-debug/spans/stats").json()["data"]
        self.assertEqual(stats["totalSpans"], 0)
        self.assertIsNone(stats["oldestSpan"])

    def test_action_route(self):
        r = self.client.post("/remote-debug/action", json={"action": "get_stats", "request_id": "r1"})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["data"]["stats"]["totalSpans"], 4)

    def test_action_route_rejects_non_objects(self):
        r = self.client.post("/remote-debug/action", json=["get_stats"])
        self.assertEqual(r.status_code, 400)
        r = self.client.post(
            "/remote-debug/action",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        self.assertEqual(r.status_code, 400)


class HandleActionTests(unittest.TestCase):
    def setUp(self):
        self.tracer = _populated_tracer()

    def test_get_spans(self):
        reply = handle_action(
            {"action": "get_spans", "request_id": "r1", "params": {"functionName": "handler"}},
            self.tracer,
        )
        self.assertEqual(reply["type"], "data_response")
        data = reply["data"]
        self.assertTrue(data["success"])
        self.assertEqual(data["request_id"], "r1")
        self.assertEqual(data["app_id"], "callprobe")
        self.assertEqual(data["total"], 2)
        self.assertIn("timestamp", data)

    def test_relayed_envelope_is_unwrapped(self):
        reply = handle_action(
            {"source": "relay", "data": {"action": "get_traces", "request_id": "r2", "params": {"limit": "1"}}},
            self.tracer,
            app_id="svc-a",
        )
        data = reply["data"]
        self.assertTrue(data["success"])
        self.assertEqual(data["request_id"], "r2")
        self.assertEqual(data["app_id"], "svc-a")
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["query"]["limit"], 1)

    def test_clear_spans(self):
        reply = handle_action({"action": "clear_spans", "request_id": "r3"}, self.tracer)
        self.assertTrue(reply["data"]["success"])
        self.assertEqual(self.tracer.statistics()["totalSpans"], 0)

    def test_unknown_action(self):
        data = handle_action({"action": "reboot", "request_id": "r4"}, self.tracer)["data"]
        self.assertFalse(data["success"])
        self.assertEqual(data["error"], "Unknown action: reboot")

    def test_bad_parameter_is_reported(self):
        data = handle_action(
            {"action": "get_spans", "request_id": "r5", "params": {"limit": "lots"}},
            self.tracer,
        )["data"]
        self.assertFalse(data["success"])
        self.assertEqual(data["request_id"], "r5")
        self.assertIn("error", data)


if __name__ == "__main__":
    unittest.main()
