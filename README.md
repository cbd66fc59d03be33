# nostrelay

Building blocks for a Nostr relay, using only the Python standard library.

- `nostrelay.subscription` parses `REQ` messages into a `Subscription` made of
  `ReqFilter` objects and decides which events a subscription is interested in.
- `nostrelay.protocol` parses client messages (`EVENT`, `AUTH`, `REQ`, `CLOSE`)
  and builds the relay's replies (`NOTICE`, `OK`, `AUTH`, `EVENT`, `EOSE`).
- `nostrelay.metrics` holds counters, gauges and histograms and renders them in
  the Prometheus text exposition format.
- `nostrelay.pages` renders the join, invoice and account pages of a paid relay.
- `nostrelay.web` answers the relay's plain HTTP endpoints and provides the
  `nostrelay` command.
- `nostrelay.utils` has time, hex, NIP-19 and URL helpers.

## Installation

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Subscriptions

    from nostrelay.subscription import loads_subscription, SubscriptionParseError

    sub = loads_subscription('["REQ","some-id",{"kinds":[1984]},{"kinds":[1984]}]')
    sub.id                         # "some-id"
    len(sub.filters)               # 1: consecutive duplicate filters are dropped
    sub.needs_historical_events()  # True unless every filter has "limit": 0

    try:
        loads_subscription('["REQ","some-id",{"authors":[""]}]')
    except SubscriptionParseError:
        ...                        # empty prefixes are rejected

`parse_subscription(value)` and `parse_filter(value)` do the same for already
decoded JSON. A request must be an array of at least three elements: `"REQ"`,
a string id, and one or more filter objects. Filter fields with values of the
wrong type are ignored; a tag query with a name longer than one letter
(`"#ab"`) makes the filter match nothing.

`Subscription.interested_in_event(event)` is true when any one of its filters
matches. `ReqFilter.interested_in_event(event)` checks id and author prefixes
(authors also match the event's `delegated_by`), `since`/`until`, kinds and
single-letter tag queries such as `"#e"`. The event is any object with `id`,
`pubkey`, `created_at`, `kind` and `tags` attributes, and optionally
`delegated_by`. `ReqFilter.to_dict()` returns the filter as a JSON-ready dict.

## Protocol messages

    from nostrelay.protocol import parse_message, notice_message, eose_message

    message = parse_message(text, max_bytes)   # EventMessage, Subscription or CloseMessage
    notice_message("could not parse command")  # '["NOTICE","could not parse command"]'
    eose_message("some-id")                    # '["EOSE","some-id"]'

`parse_message` raises `ProtoParseError` for anything it does not recognise,
and `EventTooLargeError` when an `EVENT` or `AUTH` message is longer than
`max_bytes` UTF-8 bytes (when `max_bytes` is set and positive). Both derive
from `ProtocolError`, itself a `ValueError`.

The replies are `notice_message(text)`, `ok_message(event_id, accepted, msg)`,
`auth_challenge_message(challenge)`, `event_message(sub_id, event_json)` and
`eose_message(sub_id)`; the last two drop double quotes from the subscription
id. `allowed_to_send(event_json, auth_pubkey, nip42_dms)` withholds direct
messages (kind 4), when `nip42_dms` is on, from every client except an
authenticated author or first `p` recipient.

## Metrics

    from nostrelay.metrics import create_metrics

    registry, metrics = create_metrics()
    metrics.connections.inc()
    metrics.disconnects.labels("normal").inc()
    metrics.query_sub.observe(0.02)
    print(registry.encode())

`Counter`, `LabeledCounter`, `Gauge` and `Histogram` can also be built and
added to a `Registry` directly; registering a name twice raises `ValueError`.
`Registry.encode()` renders metrics sorted by name.

## Web pages and endpoints

`handle_request(path, headers, query, config, registry, account_status=None)`
returns a `Response` (status, body bytes, headers) for:

- `/`: the relay information document (`config.relay_info`) when the `Accept`
  header includes `application/nostr+json`; otherwise a redirect to `/join`
  when pay-to-relay is enabled, or a plain text hint to use a Nostr client.
- `/metrics`: `registry.encode()`.
- `/favicon.ico`: `config.favicon`, or 404.
- `/terms`: `config.terms_message`.
- `/join`, `/invoice?pubkey=...`, `/account?pubkey=...`: the sign-up pages
  from `nostrelay.pages`. Public keys may be hex or `npub`. `/invoice` asks
  `config.invoice_provider` for an invoice and `config.qr_renderer` for its QR
  code; `account_status` tells whether a key is already admitted.

Anything else answers 404.

## The `nostrelay` command

    nostrelay --address 127.0.0.1 --port 8080

serves the endpoints above until interrupted (Ctrl-C or SIGTERM). Options:
`--address` (default `0.0.0.0`), `--port` (default `8080`), `--data-dir`
(must be an existing directory, default `.`), `--favicon`, `--name`,
`--description`, `--pay-to-relay`, `--sign-ups`, `--terms` and
`--admission-cost`.

## Utilities

    from nostrelay.utils import is_lower_hex, is_nip19, nip19_to_hex

    is_lower_hex("abcd0123")   # True
    is_nip19("npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6")  # True
    nip19_to_hex("npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6")
    # "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"

Also `unix_time()`, `is_hex(s)` and `host_str(url)`. `nip19_to_hex` raises
`ValueError` for strings that are not valid bech32.

## What this package does not do

- It does not accept WebSocket connections: an upgrade request to `/` is
  answered with 400, so the `nostrelay` command cannot relay events.
- It does not store events, verify event signatures, check NIP-05
  identities or run NIP-42 authentication.
- It does not process payments. The `nostrelay` command configures no invoice
  provider or account lookup, so `/invoice` answers "Sorry, something went
  wrong" (501) when sign-ups are on; plug in `WebConfig.invoice_provider` and
  `account_status` through `handle_request` to serve invoices.