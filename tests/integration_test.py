#!/usr/bin/env python3
"""
Live smoke run against a running ShopEasy API

Usage:
    1. Start MongoDB and the API: shopeasy-api
    2. Seed the catalog and an admin account:
       shopeasy-seed --admin-email admin@example.com --admin-password 'Adm1nPassword'
    3. Export the same credentials as SHOPEASY_ADMIN_EMAIL / SHOPEASY_ADMIN_PASSWORD
    4. Run the script: python tests/integration_test.py

This script walks the storefront flow:
    - Registration and login
    - Catalog (admin product creation, listing, details)
    - Shopping cart
    - Checkout and payment confirmation
    - Fulfillment status (admin)
    - Negative cases

Output:
    - Console logs with pass/fail status
    - smoke_test_results.json report
"""
import requests
import json
import os
import time
import sys
from datetime import datetime, timezone
from typing import Dict, Any

# Configuration
BASE_URL = os.getenv("SHOPEASY_URL", "http://localhost:8000")
API = f"{BASE_URL}/api/v1"
RESULTS_FILE = "smoke_test_results.json"
ADMIN_EMAIL = os.getenv("SHOPEASY_ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("SHOPEASY_ADMIN_PASSWORD")

# Colors
class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'

class SmokeRunner:
    def __init__(self):
        self.results = []
        self.session = requests.Session()
        self.store: Dict[str, Any] = {}
        self.start_time = time.time()

    def log(self, message: str, color: str = Colors.ENDC):
        print(f"{color}{message}{Colors.ENDC}")

    def save_result(self, name: str, status: str, duration: float, error: str = None):
        self.results.append({
            "test_name": name,
            "status": status,
            "duration": duration,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })
        color = Colors.GREEN if status == "PASS" else Colors.FAIL
        self.log(f"[{status}] {name} ({duration:.4f}s)", color)
        if error:
            self.log(f"  Error: {error}", Colors.FAIL)

    def run_test(self, name: str, func, *args, **kwargs):
        start = time.time()
        try:
            func(*args, **kwargs)
            duration = time.time() - start
            self.save_result(name, "PASS", duration)
        except AssertionError as e:
            duration = time.time() - start
            self.save_result(name, "FAIL", duration, str(e))
        except Exception as e:
            duration = time.time() - start
            self.save_result(name, "ERROR", duration, str(e))

    def assert_status(self, response, expected: int):
        if response.status_code != expected:
            raise AssertionError(f"Expected status {expected}, got {response.status_code}. Body: {response.text}")

    def save_report(self):
        with open(RESULTS_FILE, "w") as f:
            json.dump({
                "summary": {
                    "total": len(self.results),
                    "passed": len([r for r in self.results if r["status"] == "PASS"]),
                    "failed": len([r for r in self.results if r["status"] != "PASS"]),
                    "total_duration": time.time() - self.start_time
                },
                "results": self.results
            }, f, indent=2)
        self.log(f"\nTest results saved to {RESULTS_FILE}", Colors.BLUE)

# --- Smoke Steps ---

def bearer(runner: SmokeRunner, key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {runner.store[key]}"}

def check_health(runner: SmokeRunner):
    resp = runner.session.get(f"{BASE_URL}/health")
    runner.assert_status(resp, 200)
    if resp.json()["status"] != "healthy":
        raise AssertionError("API is not healthy")

# Phase 1: Authentication

def register_user(runner: SmokeRunner):
    user_data = {
        "name": "Smoke Shopper",
        "email": f"shopper_{int(time.time())}@example.com",
        "password": "Passw0rd123",
    }
    resp = runner.session.post(f"{API}/auth/register", json=user_data)
    runner.assert_status(resp, 201)
    runner.store["user_email"] = user_data["email"]
    runner.store["user_password"] = user_data["password"]

def login_users(runner: SmokeRunner):
    resp = runner.session.post(f"{API}/auth/login", json={
        "email": runner.store["user_email"],
        "password": runner.store["user_password"]
    })
    runner.assert_status(resp, 200)
    runner.store["user_token"] = resp.json()["accessToken"]

    if not (ADMIN_EMAIL and ADMIN_PASSWORD):
        raise AssertionError("SHOPEASY_ADMIN_EMAIL / SHOPEASY_ADMIN_PASSWORD are not set")
    resp = runner.session.post(f"{API}/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    runner.assert_status(resp, 200)
    if resp.json()["user"]["role"] != "admin":
        raise AssertionError("Configured admin account does not have the admin role")
    runner.store["admin_token"] = resp.json()["accessToken"]

# Phase 2: Products

def create_product(runner: SmokeRunner):
    product_data = {
        "name": "Smoke Test Product",
        "description": "A very nice product",
        "price": 20.00,
        "category": "Electronics",
        "stock": 5
    }
    resp = runner.session.post(f"{API}/products", json=product_data, headers=bearer(runner, "admin_token"))
    runner.assert_status(resp, 201)
    runner.store["product_id"] = resp.json()["product"]["id"]

def list_products(runner: SmokeRunner):
    resp = runner.session.get(f"{API}/products", params={"keyword": "Smoke Test Product"})
    runner.assert_status(resp, 200)
    products = resp.json()["products"]
    if not any(p["id"] == runner.store["product_id"] for p in products):
        raise AssertionError("Created product not found in list")

def get_product_details(runner: SmokeRunner):
    pid = runner.store["product_id"]
    resp = runner.session.get(f"{API}/products/{pid}")
    runner.assert_status(resp, 200)
    if resp.json()["product"]["name"] != "Smoke Test Product":
        raise AssertionError("Product details mismatch")

# Phase 3: Cart

def add_to_cart(runner: SmokeRunner):
    data = {"productId": runner.store["product_id"], "quantity": 5}
    resp = runner.session.post(f"{API}/cart", json=data, headers=bearer(runner, "user_token"))
    runner.assert_status(resp, 201)

def view_cart(runner: SmokeRunner):
    resp = runner.session.get(f"{API}/cart", headers=bearer(runner, "user_token"))
    runner.assert_status(resp, 200)
    cart = resp.json()["cart"]
    if len(cart["items"]) != 1 or cart["items"][0]["quantity"] != 5:
        raise AssertionError("Cart contents mismatch")
    if cart["totalPrice"] != 100.0:
        raise AssertionError(f"Cart total mismatch: {cart['totalPrice']}")

# Phase 4: Order

def create_order(runner: SmokeRunner):
    data = {
        "shippingAddress": {
            "address": "123 Test St",
            "city": "Springfield",
            "state": "IL",
            "postalCode": "62701",
            "country": "USA"
        },
        "paymentMethod": "PayPal"
    }
    resp = runner.session.post(f"{API}/orders", json=data, headers=bearer(runner, "user_token"))
    runner.assert_status(resp, 201)
    order = resp.json()["order"]
    runner.store["order_id"] = order["id"]
    if order["status"] != "Pending":
        raise AssertionError("Order status should be Pending")
    if order["totalPrice"] != 125.0:
        raise AssertionError(f"Order total mismatch: {order['totalPrice']}")

def verify_cart_cleared(runner: SmokeRunner):
    resp = runner.session.get(f"{API}/cart", headers=bearer(runner, "user_token"))
    runner.assert_status(resp, 200)
    if resp.json()["cart"]["items"]:
        raise AssertionError("Cart not cleared after order")

def verify_stock_reserved(runner: SmokeRunner):
    resp = runner.session.get(f"{API}/products/{runner.store['product_id']}")
    runner.assert_status(resp, 200)
    if resp.json()["product"]["stock"] != 0:
        raise AssertionError("Stock was not decremented")

# Phase 5: Payment & fulfillment

def confirm_payment(runner: SmokeRunner):
    oid = runner.store["order_id"]
    data = {
        "id": f"PAY-{int(time.time())}",
        "status": "COMPLETED",
        "updateTime": datetime.now(timezone.utc).isoformat(),
        "payer": {"emailAddress": runner.store["user_email"]}
    }
    resp = runner.session.put(f"{API}/orders/{oid}/pay", json=data, headers=bearer(runner, "user_token"))
    runner.assert_status(resp, 200)
    if not resp.json()["order"]["isPaid"]:
        raise AssertionError("Order not marked as paid")

def deliver_order(runner: SmokeRunner):
    oid = runner.store["order_id"]
    resp = runner.session.put(
        f"{API}/orders/{oid}/status", json={"status": "Delivered"}, headers=bearer(runner, "admin_token")
    )
    runner.assert_status(resp, 200)
    if not resp.json()["order"]["isDelivered"]:
        raise AssertionError("Order not marked as delivered")

# Phase 6: Negative Tests

def negative_tests(runner: SmokeRunner):
    # Invalid Token
    resp = runner.session.get(f"{API}/cart", headers={"Authorization": "Bearer invalid_token"})
    if resp.status_code != 401:
        raise AssertionError(f"Expected 401 for invalid token, got {resp.status_code}")

    # Empty cart checkout
    resp = runner.session.post(f"{API}/orders", json={
        "shippingAddress": {"address": "a", "city": "b", "state": "c", "postalCode": "d", "country": "e"},
        "paymentMethod": "PayPal"
    }, headers=bearer(runner, "user_token"))
    if resp.status_code != 400:
        raise AssertionError(f"Expected 400 for empty cart, got {resp.status_code}")

    # Sold out
    resp = runner.session.post(f"{API}/cart", json={"productId": runner.store["product_id"], "quantity": 1},
                               headers=bearer(runner, "user_token"))
    if resp.status_code != 400:
        raise AssertionError(f"Expected 400 for sold out product, got {resp.status_code}")

    # Non-admin product create
    bad_product = {"name": "Bad", "description": "d", "price": 1, "category": "bad"}
    resp = runner.session.post(f"{API}/products", json=bad_product, headers=bearer(runner, "user_token"))
    if resp.status_code != 403:
        raise AssertionError(f"Expected 403 for non-admin, got {resp.status_code}")


def main():
    runner = SmokeRunner()
    runner.log("Starting ShopEasy smoke run...\n", Colors.HEADER)

    runner.run_test("Health Check", check_health, runner)

    runner.run_test("Register User", register_user, runner)
    runner.run_test("Login Users", login_users, runner)

    runner.run_test("Create Product", create_product, runner)
    runner.run_test("List Products", list_products, runner)
    runner.run_test("Get Product Details", get_product_details, runner)

    runner.run_test("Add to Cart", add_to_cart, runner)
    runner.run_test("View Cart", view_cart, runner)

    runner.run_test("Create Order", create_order, runner)
    runner.run_test("Verify Cart Cleared", verify_cart_cleared, runner)
    runner.run_test("Verify Stock Reserved", verify_stock_reserved, runner)

    runner.run_test("Confirm Payment", confirm_payment, runner)
    runner.run_test("Deliver Order", deliver_order, runner)

    runner.run_test("Negative Tests", negative_tests, runner)

    runner.save_report()

    # Exit code
    if any(r["status"] != "PASS" for r in runner.results):
        sys.exit(1)

if __name__ == "__main__":
    main()
