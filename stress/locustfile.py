"""Locust profile for a redirect-heavy shortlink workload.

Each user keeps a small pool of codes it created so redirect and stats
traffic hits known links, plus an occasional unknown code to exercise the
fallback redirect.

Run with::

    locust -f stress/locustfile.py --host http://localhost:8080
"""

import random

from locust import HttpUser, between, task

MAX_CODES_PER_USER = 200
URL_SPACE = 50_000


class ShortlinkUser(HttpUser):
    """Mixed create/redirect/stats user."""

    wait_time = between(0.1, 0.5)

    def on_start(self) -> None:
        self.codes: list[str] = []

    @task(2)
    def shorten(self) -> None:
        # A bounded URL space makes some creates hit the dedup index.
        url = f"https://example.com/page/{random.randint(1, URL_SPACE)}"
        response = self.client.post("/shorten", json={"long_url": url}, name="POST /shorten")

        if response.status_code == 200:
            short_url = response.json().get("short_url")
            if short_url:
                self.codes.append(short_url.rsplit("/", 1)[-1])
                if len(self.codes) > MAX_CODES_PER_USER:
                    self.codes = self.codes[-MAX_CODES_PER_USER:]

    @task(8)
    def redirect(self) -> None:
        if not self.codes:
            self.shorten()
            return

        short_code = random.choice(self.codes)
        with self.client.get(
            f"/{short_code}?utm_source=locust",
            name="GET /:short_code",
            allow_redirects=False,
            catch_response=True,
        ) as response:
            if response.status_code != 301:
                response.failure(f"expected 301, got {response.status_code}")

    @task(1)
    def redirect_unknown(self) -> None:
        self.client.get("/zzzzzz", name="GET /:short_code (unknown)", allow_redirects=False)

    @task(1)
    def stats(self) -> None:
        if not self.codes:
            self.shorten()
            return

        short_code = random.choice(self.codes)
        self.client.get(f"/stats/{short_code}", name="GET /stats/:short_code")
