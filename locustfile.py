import os
import random

from locust import HttpUser, task, between

# Seed a user with a password and a few orders first, then point these at them
USER_ID = int(os.getenv("LOCUST_USER_ID", "1"))
PASSWORD = os.getenv("LOCUST_PASSWORD", "secret")
ORDER_IDS = [int(x) for x in os.getenv("LOCUST_ORDER_IDS", "1").split(",") if x]


class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        r = self.client.post("/auth/login", json={"user_id": USER_ID, "password": PASSWORD})
        if r.status_code == 200:
            self.headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
        else:
            self.headers = None

    @task(3)
    def get_order(self):
        if not self.headers:
            return
        oid = random.choice(ORDER_IDS)
        self.client.get(f"/order/{oid}", headers=self.headers, name="/order/[id]")

    @task(1)
    def health(self):
        self.client.get("/health")
