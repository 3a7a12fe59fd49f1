import requests
import os
from dotenv import load_dotenv

load_dotenv()

BASE_URL = os.getenv("SOLUTION360_API", "http://localhost:8000")
AUTH_URL = f"{BASE_URL}/api/v1/auth"

def login_user(email, password):
    response = requests.post(
        f"{AUTH_URL}/login",
        json={"email": email, "password": password}
    )
    return response.json()

def request_magic_link(email):
    response = requests.post(f"{AUTH_URL}/magic-link", json={"email": email})
    return response.json()

def get_user_profile(token):
    response = requests.get(
        f"{AUTH_URL}/me",
        headers={"Authorization": f"Bearer {token}"}
    )
    return response.json()

def logout_user(token):
    response = requests.post(
        f"{AUTH_URL}/logout",
        headers={"Authorization": f"Bearer {token}"}
    )
    return response.json()

def otp_login(email):
    session = requests.Session()
    sent = session.post(f"{BASE_URL}/api/send-otp", json={"email": email})
    print(f"Send OTP result: {sent.json()}")

    code = input("Enter the code received via email: ")
    verified = session.post(f"{BASE_URL}/api/verify-otp", json={"email": email, "otp": code})
    print(f"Verify OTP result: {verified.json()}")
    return session.cookies.get("session")

if __name__ == "__main__":
    email = "employee@example.com"
    password = "securepassword123"

    # 1. Password sign-in
    login_result = login_user(email, password)
    print(f"Login result: {login_result}")

    token = login_result.get("access_token")
    if token:
        print(f"User profile: {get_user_profile(token)}")
        print(f"Logout result: {logout_user(token)}")

    # 2. Passwordless sign-in
    print(f"Magic link result: {request_magic_link(email)}")

    # 3. One-time code
    session_cookie = otp_login(email)
    print(f"Session cookie set: {bool(session_cookie)}")
