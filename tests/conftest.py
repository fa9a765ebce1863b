"""Shared fixtures: fake Supabase store, isolated query enhancer, API client."""

import os

# Config reads the environment at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("SITE_URL", "https://contracts.example.com")
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from contract_search.app import app
from contract_search.services import query_enhancer, supabase_service
from contract_search.services.query_enhancer import QueryEnhancer

from .fake_supabase import FakeSupabase, make_user


FREE_USER_ID = "11111111-1111-4111-8111-111111111111"
PRO_USER_ID = "22222222-2222-4222-8222-222222222222"
FREE_TOKEN = "free-user-token"
PRO_TOKEN = "pro-user-token"

CONTRACT_ROWS = [
    {
        'id': 'c1',
        'purchasing_org': 'OMNIA',
        'contract_number': 'R-2024-01',
        'document_urls': ['https://docs.example.com/r-2024-01.pdf'],
        'vendor_name': 'Dell Technologies',
        'contract_title': 'Computer Hardware and Software',
        'description': 'Laptops, servers and network equipment',
        'items': [{'category': 'Technology'}],
        'contract_start_date': '2024-01-01',
        'contract_end_date': '2027-01-01',
        'created_at': '2024-01-05T10:00:00+00:00',
    },
    {
        'id': 'c2',
        'purchasing_org': 'Sourcewell',
        'contract_number': 'SW-77',
        'document_urls': [],
        'vendor_name': 'Dell Technologies',
        'contract_title': 'Data Center Solutions',
        'description': 'Storage and server infrastructure',
        'items': [{'category': 'Technology'}],
        'contract_start_date': '2023-06-01',
        'contract_end_date': '2026-06-01',
        'created_at': '2024-02-05T10:00:00+00:00',
    },
    {
        'id': 'c3',
        'purchasing_org': 'E&I',
        'contract_number': None,
        'document_urls': None,
        'vendor_name': None,
        'contract_title': 'Janitorial Services',
        'description': 'Facility cleaning and maintenance',
        'items': [{'category': 'Facilities'}],
        'contract_start_date': None,
        'contract_end_date': None,
        'created_at': '2024-03-05T10:00:00+00:00',
    },
    {
        'id': 'c4',
        'purchasing_org': 'OMNIA',
        'contract_number': 'R-2024-09',
        'document_urls': ['https://docs.example.com/r-2024-09.pdf'],
        'vendor_name': 'Herman Miller',
        'contract_title': 'Office Furniture',
        'description': 'Desks and chairs',
        'items': [{'category': 'Furniture'}],
        'contract_start_date': '2022-01-01',
        'contract_end_date': '2025-01-01',
        'created_at': '2024-04-05T10:00:00+00:00',
    },
]


def user_row(user_id, email, plan='free', **extra):
    return {
        'id': user_id,
        'email': email,
        'full_name': email.split('@')[0].title(),
        'subscription_status': plan,
        'stripe_customer_id': None,
        'stripe_subscription_id': None,
        'current_period_end': None,
        **extra,
    }


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(supabase_service, "_client", fake)
    monkeypatch.setattr(supabase_service, "create_client", lambda url, key: fake)
    return fake


@pytest.fixture
def contracts(store):
    store.seed('contracts', CONTRACT_ROWS)
    return store


@pytest.fixture
def users(store):
    store.seed('users', [
        user_row(FREE_USER_ID, 'free@example.com', stripe_customer_id='cus_free'),
        user_row(PRO_USER_ID, 'pro@example.com', plan='pro', stripe_customer_id='cus_pro',
                 stripe_subscription_id='sub_pro'),
    ])
    store.auth.add_user(make_user(FREE_USER_ID, 'free@example.com', 'Free'), FREE_TOKEN, password='free-password')
    store.auth.add_user(make_user(PRO_USER_ID, 'pro@example.com', 'Pro'), PRO_TOKEN, password='pro-password')
    return store


@pytest.fixture
def enhancer(monkeypatch):
    instance = QueryEnhancer(api_key="")
    monkeypatch.setattr(query_enhancer, "_enhancer", instance)
    return instance


@pytest.fixture
def client(store, enhancer):
    return TestClient(app, raise_server_exceptions=False)
