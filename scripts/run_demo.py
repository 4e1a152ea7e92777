#!/usr/bin/env python3
"""
run_demo.py - End-to-end demo against a running storefront API
- Registers/logs in admin & customer
- Admin creates a product
- Customer adds it to the cart and checks out (payment is simulated and may fail)
- Customer cancels the order, stock is restored
- Admin places a second order through SHIPPED -> DELIVERED and reads the reports
"""

import requests
import json
import os
from typing import Dict, Any, Optional, List

class DemoRunner:
    def __init__(self):
        self.base_url = os.getenv("STOREFRONT_URL", "http://localhost:8000")
        self.auth_url = f"{self.base_url}/auth"
        self.products_url = f"{self.base_url}/products"
        self.cart_url = f"{self.base_url}/cart"
        self.orders_url = f"{self.base_url}/orders"

        self.admin_email = "demo-admin@example.com"
        self.admin_pass = "P@ssw0rd!"
        self.cust_email = "demo-cust@example.com"
        self.cust_pass = "P@ssw0rd!"

        self.admin_access_token: Optional[str] = None
        self.cust_access_token: Optional[str] = None

    # ---------- helpers ----------
    def show_step(self, title: str):
        print(f"\n=== {title} ===")

    def mask_token(self, token: str) -> str:
        if not token:
            return "<none>"
        return token if len(token) <= 12 else f"{token[:8]}...{token[-6:]}"

    def call_api(
        self,
        method: str,
        url: str,
        headers: Optional[Dict] = None,
        data: Optional[Any] = None,
        expected_status: List[int] = [200, 201, 202, 204],
        quiet: bool = False,
        timeout: int = 30,
    ):
        if not quiet:
            print(f"\n-> {method} {url}")
            if data is not None:
                print(f"   Body: {json.dumps(data, indent=2)}")

        try:
            resp = requests.request(method=method, url=url, headers=headers, json=data, timeout=timeout)
            if not quiet:
                status_color = "\033[92m" if resp.status_code in expected_status else "\033[93m"
                print(f"   Status: {status_color}{resp.status_code}\033[0m")
            try:
                js = resp.json()
                if not quiet:
                    print("   JSON:")
                    print(json.dumps(js, indent=2))
                return {"status": resp.status_code, "data": js, "raw": resp.text}
            except json.JSONDecodeError:
                return {"status": resp.status_code, "data": None, "raw": resp.text}
        except requests.exceptions.RequestException as e:
            if not quiet:
                print(f"   Error: \033[91m{e}\033[0m")
            return {"status": None, "data": None, "raw": None, "error": str(e)}

    def login(self, email: str, password: str, name: str, role: str) -> Optional[str]:
        self.call_api("POST", f"{self.auth_url}/register",
                      data={"email": email, "name": name, "password": password, "role": role},
                      expected_status=[201, 409], quiet=True)
        lr = self.call_api("POST", f"{self.auth_url}/login", data={"email": email, "password": password})
        token = (lr.get("data") or {}).get("tokens", {}).get("access_token")
        print(f"{role} access token: {self.mask_token(token)}")
        return token

    def checkout(self, hdrs: Dict, attempts: int = 5) -> Optional[Dict]:
        # the simulated gateway declines a share of payments; the cart survives a decline
        for _ in range(attempts):
            co = self.call_api("POST", f"{self.orders_url}/", headers=hdrs,
                               data={"payment_method": "credit_card"}, expected_status=[201])
            if co.get("status") == 201:
                return co["data"]
            if (co.get("data") or {}).get("kind") != "payment_failed":
                return None
        return None

    # ---------- flow ----------
    def run_demo(self):
        print("Starting Storefront Demo")
        print("=" * 50)

        health = self.call_api("GET", f"{self.base_url}/health", quiet=True)
        if health.get("status") != 200:
            print(f"\033[91mAPI not reachable at {self.base_url}\033[0m")
            return

        self.show_step("Admin + customer: register/login")
        self.admin_access_token = self.login(self.admin_email, self.admin_pass, "Demo Admin", "ADMIN")
        self.cust_access_token = self.login(self.cust_email, self.cust_pass, "Demo Customer", "CUSTOMER")
        admin_hdrs = {"Authorization": f"Bearer {self.admin_access_token}"}
        cust_hdrs = {"Authorization": f"Bearer {self.cust_access_token}"}

        self.show_step("Admin: create product")
        pr = self.call_api("POST", f"{self.products_url}/", headers=admin_hdrs,
                           data={"name": "Air Zoom", "description": "Runner", "price_cents": 12999, "stock": 5})
        product_id = (pr.get("data") or {}).get("id")
        if not product_id:
            print("Skipping the rest - no product")
            return

        self.show_step("Customer: add to cart + validate")
        self.call_api("POST", f"{self.cart_url}/items", headers=cust_hdrs, data={"product_id": product_id, "quantity": 2})
        self.call_api("GET", f"{self.cart_url}/validate", headers=cust_hdrs)

        self.show_step("Customer: checkout")
        order = self.checkout(cust_hdrs)
        if order:
            self.call_api("GET", f"{self.products_url}/{product_id}")

            self.show_step("Customer: cancel (stock goes back to 5)")
            self.call_api("PATCH", f"{self.orders_url}/{order['id']}/cancel", headers=cust_hdrs)
            self.call_api("GET", f"{self.products_url}/{product_id}")

        self.show_step("Customer: second order, admin ships and delivers it")
        self.call_api("POST", f"{self.cart_url}/items", headers=cust_hdrs, data={"product_id": product_id, "quantity": 1})
        order = self.checkout(cust_hdrs)
        if order:
            for status in ("SHIPPED", "DELIVERED"):
                self.call_api("PUT", f"{self.orders_url}/{order['id']}/status", headers=admin_hdrs, data={"status": status})
            self.call_api("PATCH", f"{self.orders_url}/{order['id']}/cancel", headers=cust_hdrs, expected_status=[400])

        self.show_step("Admin: reports")
        self.call_api("GET", f"{self.orders_url}/admin/statistics", headers=admin_hdrs)
        self.call_api("GET", f"{self.orders_url}/admin/revenue?period=day&limit=7", headers=admin_hdrs)

        print("\n\033[92m=== DEMO COMPLETE ===\033[0m")


if __name__ == "__main__":
    DemoRunner().run_demo()
