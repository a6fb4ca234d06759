# lingress

The building blocks of an edge ingress reverse proxy. This is a library. It has no command
and does not start a server of its own. It gives you the parts that carry a request through
the stages of being proxied and report on it afterwards.

## What is in it

- `lingress.context` has `acquire_context(connector, from_other_reverse_proxy, request, response, logger)`.
  It creates a `Context` for an incoming request. The context holds:
  - the `Client` state (`lingress.client`) and the `Upstream` state (`lingress.upstream`);
  - the request and correlation ids (`lingress.ids.RequestId`);
  - the current `Stage` (`lingress.stage`) and the result.

  The result is a `SimpleResult` or a `RedirectResult` from `lingress.result`. The constants
  there include `RESULT_SUCCESS` and `RESULT_FAILED_WITH_RULE_NOT_FOUND`.

  Use `Context.done`, `mark_error`, `mark_unavailable` and `mark_unknown` to record the
  outcome. `as_map(inline_fields)` turns the context into a dict and `to_json()` into JSON.
  `log()` returns a `logging.LoggerAdapter` that carries the context's fields. `release()`
  resets the context.
- `lingress.client` has `Request` and `Response`, two plain data classes. It also has
  `Client`, which works out the URL the client asked for (`requested_url()`), its origin
  (`origin()`) and its address (`address()`). When the client sits behind another reverse
  proxy, `Client` takes the `X-Forwarded-*` headers into account. Without a request these
  methods raise `NoRequestSetError`.
- `lingress.ids` has `new_id`, which reuses a valid `X-Request-ID` only when the request
  comes from a trusted proxy. `new_correlation_id` always accepts a valid
  `X-Correlation-ID`. Ids are UUIDs written as unpadded base64.
- `lingress.interceptors` has `Interceptors`, which groups interceptors by stage and name.
  `handle(ctx)` runs the interceptors of the context's stage and stops at the first one that
  returns `False`. `default_interceptors()` returns a set that holds
  `upstream_hints_interceptor` and `client_hints_interceptor`. These set `X-Source`,
  `X-Request-Id`, `X-Correlation-Id` and the forwarding headers.
- `lingress.headers` has `Headers`, a multi-valued header map that matches names without
  regard to case. It also has helpers for hop-by-hop headers (`remove_connection_headers`,
  `remove_hop_request_headers`, `remove_hop_response_headers`) and for protocol upgrades
  (`retrieve_upgrade_type`, `set_connection_upgrades`).
- `lingress.providers` has read-only file providers:
  - `DirectoryFileProvider` for a directory on disk;
  - `MappingFileProvider` for files held in memory;
  - `PrefixedFileProvider`, also made by `file_provider_stripping_prefix`, for a view below a
    prefix;
  - `NoopFileProvider`.

  `FileProviders` bundles the localization, static and template providers.
- `lingress.status` sorts HTTP status codes into temporary, client-side and server-side
  issues.
- `lingress.i18n` has `load_bundle(provider)`, which reads every `.yaml`/`.yml` file in a
  provider's root into a `Bundle`. The last dot-separated part of the file name gives the
  language, so `de.yaml` and `messages.de.yml` are both German. Nested keys become dotted
  message ids. `LocalizationContext` resolves messages against an `Accept-Language` header
  and falls back to `en-US`. `localize_status(code, lc)` looks up `status-message.<code>` and
  falls back to `status-message.default`.
- `lingress.metrics` has `Metrics`, which keeps request counters, duration histograms and
  connection states per connector, along with upstream metrics and rule counts. `render()`
  returns them in the Prometheus text exposition format.
- `lingress.accesslog` has `AccessLog`, which writes one record per handled request. It
  writes directly, or through a worker queue when `queue_size` is positive. Use
  `start()`/`stop()` or a `with` block to run the queue. `log_level_by_status` maps statuses
  below 500 to INFO, 502/503/504 to WARNING and everything else to ERROR. Requests from
  `kube-probe/` user agents on private or loopback addresses are left out unless their
  status is 400 or higher. `track_connection_state` updates `ConnectionStates` counters.

## Installation

```
pip install lingress
```

## Example

```python
from lingress.client import Request, Response
from lingress.context import acquire_context
from lingress.result import RESULT_SUCCESS

request = Request(
    method="GET",
    host="example.com",
    request_uri="/hello",
    remote_addr="10.0.0.1:51234",
)
ctx = acquire_context("http", False, request, Response(), None)
ctx.done(RESULT_SUCCESS)
print(ctx.as_map(False))
ctx.release()
```

Loading localized status messages from a directory of YAML files such as `en.yaml` and
`de.yaml`:

```python
from lingress.i18n import LocalizationContext, load_bundle, localize_status
from lingress.providers import DirectoryFileProvider

bundle = load_bundle(DirectoryFileProvider("localization"))
lc = LocalizationContext(bundle, accept_language="de-DE,de;q=0.9")
print(localize_status(404, lc))
```

## What it does not do

The package does not accept connections, forward requests to backends or terminate TLS. It
does not watch a cluster for routing rules and has no rule repository of its own. It does
not render HTML fallback pages and has no management HTTP endpoint. `Metrics.render()`
returns the text, but serving it is up to you. There is no command-line program. These parts
have to be supplied by the application that uses the library.