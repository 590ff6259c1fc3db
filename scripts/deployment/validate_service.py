#!/usr/bin/env python3
"""
Validation script for URL Shortener service.
Tests the live running service to ensure all functionality works correctly.
"""

import sys
import time
import requests
from typing import Optional
from datetime import datetime


class ServiceValidator:
    """Validates URL shortener service functionality."""

    def __init__(self, base_url: str = "http://localhost:5000"):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.test_results = []

    def print_header(self, text: str):
        """Print a formatted header."""
        print(f"\n{'='*60}")
        print(f"  {text}")
        print(f"{'='*60}\n")

    def print_test(self, name: str, passed: bool, details: str = ""):
        """Print test result."""
        status = "✅ PASS" if passed else "❌ FAIL"
        self.test_results.append((name, passed))
        print(f"{status} - {name}")
        if details:
            print(f"       {details}")

    def test_health_check(self) -> bool:
        """Test health check endpoint."""
        try:
            response = self.session.get(f"{self.base_url}/api/health", timeout=5)
            if response.status_code == 200:
                data = response.json()
                is_healthy = data.get("status") == "ok"
                details = (
                    f"Cached: {data.get('cache_len')}, "
                    f"Limit: {data.get('max_per_subnet')} per subnet, "
                    f"Expiry: {data.get('expiry_days')} days"
                )
                self.print_test("Health Check", is_healthy, details)
                return is_healthy
            else:
                self.print_test("Health Check", False, f"Status: {response.status_code}")
                return False
        except requests.RequestException as e:
            self.print_test("Health Check", False, f"Error: {str(e)}")
            return False

    def test_create_short_url(self) -> Optional[str]:
        """Test creating a short URL."""
        try:
            test_url = f"https://example.com/test/{int(time.time())}"
            response = self.session.post(
                f"{self.base_url}/api/shorten",
                json={"url": test_url},
                timeout=5
            )

            if response.status_code == 200:
                data = response.json()
                short_code = data.get("short_code")
                if short_code:
                    quota = data.get("rate_limit", {})
                    self.print_test(
                        "Create Short URL",
                        True,
                        f"Code: {short_code}, URL: {data.get('short_url')}, "
                        f"Remaining: {quota.get('remaining')}/{quota.get('limit')}"
                    )
                    return short_code

            self.print_test("Create Short URL", False, f"Status: {response.status_code}")
            return None
        except requests.RequestException as e:
            self.print_test("Create Short URL", False, f"Error: {str(e)}")
            return None

    def test_list_contains(self, short_code: str) -> bool:
        """Test that a new code shows up in the active list."""
        try:
            response = self.session.get(f"{self.base_url}/api/list", timeout=5)

            if response.status_code == 200:
                data = response.json()
                listed = short_code in data.get("items", {})
                self.print_test("List Active Links", listed, f"Count: {data.get('count')}")
                return listed
            else:
                self.print_test("List Active Links", False, f"Status: {response.status_code}")
                return False
        except requests.RequestException as e:
            self.print_test("List Active Links", False, f"Error: {str(e)}")
            return False

    def test_redirect(self, short_code: str) -> bool:
        """Test URL redirect functionality."""
        try:
            response = self.session.get(
                f"{self.base_url}/{short_code}",
                allow_redirects=False,
                timeout=5
            )

            is_redirect = response.status_code == 302
            location = response.headers.get("Location", "")
            self.print_test(
                "URL Redirect",
                is_redirect,
                f"Redirects to: {location[:50]}..." if location else "No Location header"
            )
            return is_redirect
        except requests.RequestException as e:
            self.print_test("URL Redirect", False, f"Error: {str(e)}")
            return False

    def test_invalid_url(self) -> bool:
        """Test invalid URL rejection."""
        try:
            response = self.session.post(
                f"{self.base_url}/api/shorten",
                json={"url": "ftp://example.com/file"},
                timeout=5
            )

            is_rejected = response.status_code == 400
            self.print_test(
                "Invalid URL Rejection",
                is_rejected,
                f"Status: {response.status_code} (expected 400)"
            )
            return is_rejected
        except requests.RequestException as e:
            self.print_test("Invalid URL Rejection", False, f"Error: {str(e)}")
            return False

    def test_malformed_body(self) -> bool:
        """Test malformed JSON rejection."""
        try:
            response = self.session.post(
                f"{self.base_url}/api/shorten",
                data="{not json",
                headers={"Content-Type": "application/json"},
                timeout=5
            )

            is_rejected = response.status_code == 400
            self.print_test(
                "Malformed Body Rejection",
                is_rejected,
                f"Status: {response.status_code} (expected 400)"
            )
            return is_rejected
        except requests.RequestException as e:
            self.print_test("Malformed Body Rejection", False, f"Error: {str(e)}")
            return False

    def test_nonexistent_code(self) -> bool:
        """Test accessing non-existent short code."""
        try:
            response = self.session.get(
                f"{self.base_url}/nonexistent999",
                allow_redirects=False,
                timeout=5
            )

            is_not_found = response.status_code == 404
            self.print_test(
                "Non-existent Code",
                is_not_found,
                f"Status: {response.status_code} (expected 404)"
            )
            return is_not_found
        except requests.RequestException as e:
            self.print_test("Non-existent Code", False, f"Error: {str(e)}")
            return False

    def test_rate_limit(self, subnet_prefix: str) -> bool:
        """Exhaust one subnet's quota and expect a 429.

        Relies on the service trusting X-Forwarded-For, and leaves that
        subnet in cooldown.
        """
        try:
            for i in range(1, 256):
                response = self.session.post(
                    f"{self.base_url}/api/shorten",
                    json={"url": f"https://example.com/rate/{int(time.time())}/{i}"},
                    headers={"X-Forwarded-For": f"{subnet_prefix}.{i}"},
                    timeout=5
                )
                if response.status_code == 429:
                    data = response.json()
                    passed = (
                        data.get("error") == "rate_limit_exceeded"
                        and "Retry-After" in response.headers
                    )
                    self.print_test(
                        "Subnet Rate Limit",
                        passed,
                        f"Refused after {i - 1} creations, cooldown {data.get('cooldown_remaining')}"
                    )
                    return passed
                if response.status_code != 200:
                    self.print_test("Subnet Rate Limit", False, f"Status: {response.status_code}")
                    return False

            self.print_test("Subnet Rate Limit", False, "No 429 after 255 creations")
            return False
        except requests.RequestException as e:
            self.print_test("Subnet Rate Limit", False, f"Error: {str(e)}")
            return False

    def test_stats_endpoint(self) -> bool:
        """Test stats endpoint."""
        try:
            response = self.session.get(f"{self.base_url}/api/stats", timeout=5)

            if response.status_code == 200:
                data = response.json()
                has_stats = "cache" in data and "rate_limit" in data
                total = data.get("database_total", "N/A")
                self.print_test(
                    "Stats Endpoint",
                    has_stats,
                    f"Stored links: {total}, Cleanup: {data.get('cleanup_schedule', 'N/A')}"
                )
                return has_stats
            else:
                self.print_test("Stats Endpoint", False, f"Status: {response.status_code}")
                return False
        except requests.RequestException as e:
            self.print_test("Stats Endpoint", False, f"Error: {str(e)}")
            return False

    def test_web_interface(self) -> bool:
        """Test web interface homepage."""
        try:
            response = self.session.get(f"{self.base_url}/", timeout=5)

            is_ok = response.status_code == 200 and "text/html" in response.headers.get("content-type", "")
            self.print_test(
                "Web Interface",
                is_ok,
                f"Content-Type: {response.headers.get('content-type', 'N/A')}"
            )
            return is_ok
        except requests.RequestException as e:
            self.print_test("Web Interface", False, f"Error: {str(e)}")
            return False

    def run_all_tests(self, rate_limit_subnet: Optional[str] = None) -> bool:
        """Run all validation tests."""
        self.print_header("URL Shortener Service Validation")
        print(f"Testing service at: {self.base_url}")
        print(f"Timestamp: {datetime.now().isoformat()}\n")

        # Basic connectivity
        if not self.test_health_check():
            print("\n❌ Health check failed. Service may not be running.")
            print(f"   Make sure the service is accessible at {self.base_url}")
            return False

        print()

        # Core functionality tests
        short_code = self.test_create_short_url()
        if short_code:
            self.test_list_contains(short_code)
            self.test_redirect(short_code)

        print()

        self.test_invalid_url()
        self.test_malformed_body()
        self.test_nonexistent_code()
        if rate_limit_subnet:
            self.test_rate_limit(rate_limit_subnet)

        print()

        # Additional endpoints
        self.test_stats_endpoint()
        self.test_web_interface()

        # Print summary
        self.print_summary()

        # Return overall success
        return all(passed for _, passed in self.test_results)

    def print_summary(self):
        """Print test summary."""
        total = len(self.test_results)
        passed = sum(1 for _, p in self.test_results if p)
        failed = total - passed

        self.print_header("Test Summary")
        print(f"Total Tests:  {total}")
        print(f"✅ Passed:     {passed}")
        print(f"❌ Failed:     {failed}")
        print(f"Success Rate: {(passed/total*100):.1f}%")

        if failed > 0:
            print("\n⚠️  Failed tests:")
            for name, passed in self.test_results:
                if not passed:
                    print(f"   - {name}")

        print()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Validate URL Shortener service functionality"
    )
    parser.add_argument(
        "--url",
        default="http://localhost:5000",
        help="Base URL of the service (default: http://localhost:5000)"
    )
    parser.add_argument(
        "--rate-limit-subnet",
        default=None,
        metavar="A.B.C",
        help="Also exhaust the quota of this /24 (e.g. 192.0.2); leaves it in cooldown"
    )

    args = parser.parse_args()

    validator = ServiceValidator(args.url)

    try:
        success = validator.run_all_tests(rate_limit_subnet=args.rate_limit_subnet)
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\n⚠️  Validation interrupted by user")
        sys.exit(2)
    except Exception as e:
        print(f"\n\n❌ Validation failed with error: {str(e)}")
        sys.exit(3)


if __name__ == "__main__":
    main()
