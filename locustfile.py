from locust import HttpUser, task, between
import random

class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Sign up an account for this simulated client
        email = f"user_{random.randint(1, 1_000_000)}@load.test"
        self.credentials = {"email": email, "password": "load-pass"}
        r = self.client.post("/api/signup", json={"name": email, **self.credentials})
        if r.status_code == 200:
            self.headers = {"Authorization": f"Bearer {r.json()['token']}"}
        else:
            self.headers = None

    @task(5)
    def list_products(self):
        self.client.get("/api/products")

    @task(2)
    def create_product(self):
        if not self.headers:
            return
        price = round(random.random() * 100, 2)
        self.client.post(
            "/api/products",
            json={"title": f"Load item {random.randint(1, 10_000)}", "price": str(price)},
            headers=self.headers,
        )

    @task(1)
    def login(self):
        self.client.post("/api/login", json=self.credentials)
