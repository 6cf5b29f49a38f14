"""Booking engine schema (SQL-only).

Creates hotels/rooms reference tables, bookings with the room-overlap
exclusion constraint, coupons and their usages, payments, the wallet
ledger, refund requests, price adjustments and the webhook dedupe table.

Revision ID: 001_booking_engine_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op

revision = "001_booking_engine_schema"
down_revision = None
branch_labels = None
depends_on = None


_SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS pgcrypto;
CREATE EXTENSION IF NOT EXISTS btree_gist;

CREATE TABLE users (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    external_subject text NOT NULL UNIQUE,
    email text,
    name text,
    role text NOT NULL DEFAULT 'guest'
        CHECK (role IN ('guest', 'hotel', 'admin')),
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE hotels (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    owner_id uuid REFERENCES users(id),
    city_id uuid,
    currency text NOT NULL DEFAULT 'INR',
    cancellation_time_hours integer NOT NULL DEFAULT 24
        CHECK (cancellation_time_hours >= 0),
    cancellation_fee_percentage numeric(5, 2) NOT NULL DEFAULT 0
        CHECK (cancellation_fee_percentage BETWEEN 0 AND 100),
    online_payment_enabled boolean NOT NULL DEFAULT true,
    offline_payment_enabled boolean NOT NULL DEFAULT true,
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE room_types (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL
);

CREATE TABLE rooms (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    hotel_id uuid NOT NULL REFERENCES hotels(id),
    room_type_id uuid REFERENCES room_types(id),
    price_per_night_cents integer NOT NULL CHECK (price_per_night_cents >= 0),
    price_per_hour_cents integer CHECK (price_per_hour_cents >= 0),
    capacity integer NOT NULL CHECK (capacity >= 1),
    status text NOT NULL DEFAULT 'available'
        CHECK (status IN ('available', 'occupied', 'maintenance', 'out_of_order'))
);

CREATE TABLE coupons (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    code text NOT NULL UNIQUE,
    discount_type text NOT NULL CHECK (discount_type IN ('percentage', 'fixed')),
    discount_value numeric(12, 2) NOT NULL CHECK (discount_value >= 0),
    max_discount_cents integer CHECK (max_discount_cents >= 0),
    min_order_cents integer NOT NULL DEFAULT 0 CHECK (min_order_cents >= 0),
    valid_from timestamptz NOT NULL,
    valid_to timestamptz NOT NULL,
    usage_limit integer CHECK (usage_limit >= 0),
    used_count integer NOT NULL DEFAULT 0 CHECK (used_count >= 0),
    applicable_booking_types text NOT NULL DEFAULT 'both'
        CHECK (applicable_booking_types IN ('daily', 'hourly', 'both')),
    status text NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'inactive', 'expired')),
    created_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT coupons_valid_window CHECK (valid_from <= valid_to),
    CONSTRAINT coupons_usage_within_limit
        CHECK (usage_limit IS NULL OR used_count <= usage_limit)
);

CREATE TABLE coupon_mappings (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    coupon_id uuid NOT NULL REFERENCES coupons(id) ON DELETE CASCADE,
    city_id uuid,
    hotel_id uuid REFERENCES hotels(id),
    room_type_id uuid REFERENCES room_types(id)
);
CREATE INDEX idx_coupon_mappings_coupon ON coupon_mappings (coupon_id);

CREATE TABLE bookings (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id uuid NOT NULL REFERENCES users(id),
    hotel_id uuid NOT NULL REFERENCES hotels(id),
    room_id uuid NOT NULL REFERENCES rooms(id),
    check_in timestamptz NOT NULL,
    check_out timestamptz NOT NULL,
    booking_type text NOT NULL DEFAULT 'daily'
        CHECK (booking_type IN ('daily', 'hourly')),
    guest_count integer NOT NULL CHECK (guest_count >= 1),
    guest_name text,
    guest_email text,
    guest_phone text,
    special_requests text,
    total_amount_cents integer NOT NULL CHECK (total_amount_cents >= 0),
    discount_cents integer NOT NULL DEFAULT 0 CHECK (discount_cents >= 0),
    coupon_id uuid REFERENCES coupons(id),
    payment_mode text NOT NULL CHECK (payment_mode IN ('online', 'offline')),
    advance_amount_cents integer,
    remaining_amount_cents integer,
    wallet_amount_cents integer NOT NULL DEFAULT 0 CHECK (wallet_amount_cents >= 0),
    status text NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'confirmed', 'cancelled', 'completed')),
    payment_status text NOT NULL DEFAULT 'pending'
        CHECK (payment_status IN ('pending', 'completed', 'refunded')),
    cancelled_at timestamptz,
    cancelled_by text,
    cancellation_reason text,
    payment_due_at timestamptz,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT bookings_range_valid CHECK (check_in < check_out),
    CONSTRAINT bookings_offline_split CHECK (
        advance_amount_cents IS NULL
        OR advance_amount_cents + remaining_amount_cents + wallet_amount_cents = total_amount_cents
    ),
    CONSTRAINT bookings_wallet_within_total CHECK (wallet_amount_cents <= total_amount_cents),
    CONSTRAINT bookings_no_room_overlap
        EXCLUDE USING gist (
            room_id WITH =,
            tstzrange(check_in, check_out, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
);
CREATE INDEX idx_bookings_user ON bookings (user_id, created_at DESC);
CREATE INDEX idx_bookings_hotel ON bookings (hotel_id);

CREATE TABLE coupon_usages (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    coupon_id uuid NOT NULL REFERENCES coupons(id),
    user_id uuid NOT NULL REFERENCES users(id),
    booking_id uuid NOT NULL REFERENCES bookings(id),
    discount_cents integer NOT NULL CHECK (discount_cents >= 0),
    used_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT uq_coupon_usages_coupon_user UNIQUE (coupon_id, user_id),
    CONSTRAINT uq_coupon_usages_coupon_booking UNIQUE (coupon_id, booking_id)
);

CREATE TABLE payments (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    booking_id uuid NOT NULL REFERENCES bookings(id),
    amount_cents integer NOT NULL CHECK (amount_cents >= 0),
    currency text NOT NULL DEFAULT 'INR',
    payment_mode text NOT NULL CHECK (payment_mode IN ('online', 'offline')),
    payment_type text NOT NULL CHECK (payment_type IN ('advance', 'remaining', 'full', 'wallet')),
    status text NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'completed', 'failed')),
    provider text,
    gateway_order_id text UNIQUE,
    gateway_payment_id text,
    settled_by text,
    settled_at timestamptz,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX idx_payments_booking ON payments (booking_id);

CREATE TABLE wallets (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id uuid NOT NULL UNIQUE REFERENCES users(id),
    balance_cents bigint NOT NULL DEFAULT 0,
    total_earned_cents bigint NOT NULL DEFAULT 0,
    total_spent_cents bigint NOT NULL DEFAULT 0,
    status text NOT NULL DEFAULT 'active'
        CHECK (status IN ('active', 'frozen')),
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT wallets_balance_non_negative CHECK (balance_cents >= 0),
    CONSTRAINT wallets_balance_matches_totals
        CHECK (balance_cents = total_earned_cents - total_spent_cents)
);

CREATE TABLE wallet_transactions (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    seq bigserial NOT NULL UNIQUE,
    wallet_id uuid NOT NULL REFERENCES wallets(id),
    user_id uuid NOT NULL REFERENCES users(id),
    type text NOT NULL CHECK (type IN ('credit', 'debit')),
    amount_cents bigint NOT NULL CHECK (amount_cents > 0),
    balance_after_cents bigint NOT NULL CHECK (balance_after_cents >= 0),
    source text NOT NULL,
    description text,
    reference_id text,
    reference_type text,
    metadata jsonb NOT NULL DEFAULT '{}'::jsonb,
    created_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX idx_wallet_transactions_wallet ON wallet_transactions (wallet_id, seq);

CREATE TABLE refund_requests (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    booking_id uuid NOT NULL REFERENCES bookings(id),
    user_id uuid NOT NULL REFERENCES users(id),
    original_amount_cents integer NOT NULL CHECK (original_amount_cents >= 0),
    cancellation_fee_cents integer NOT NULL CHECK (cancellation_fee_cents >= 0),
    refund_amount_cents integer NOT NULL CHECK (refund_amount_cents >= 0),
    cancellation_fee_percentage numeric(5, 2) NOT NULL DEFAULT 0,
    refund_type text NOT NULL,
    reason text,
    refund_method text NOT NULL,
    status text NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'processed', 'rejected')),
    requested_by text,
    processed_by text,
    processed_at timestamptz,
    rejection_reason text,
    gateway_refund_id text,
    expected_processing_days integer,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT refund_requests_amounts
        CHECK (refund_amount_cents + cancellation_fee_cents = original_amount_cents)
);
CREATE UNIQUE INDEX uq_refund_requests_booking ON refund_requests (booking_id);

CREATE TABLE price_adjustments (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text,
    adjustment_type text NOT NULL CHECK (adjustment_type IN ('percentage', 'fixed')),
    value numeric(12, 2) NOT NULL,
    city_ids uuid[] NOT NULL DEFAULT '{}',
    hotel_ids uuid[] NOT NULL DEFAULT '{}',
    room_type_ids uuid[] NOT NULL DEFAULT '{}',
    effective_from timestamptz NOT NULL DEFAULT now(),
    expires_at timestamptz,
    status text NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'inactive')),
    created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE processed_events (
    id bigserial PRIMARY KEY,
    source text NOT NULL,
    external_id text NOT NULL,
    created_at timestamptz NOT NULL DEFAULT now(),
    CONSTRAINT uq_processed_events_source_external UNIQUE (source, external_id)
);
"""


def upgrade() -> None:
    op.execute(_SCHEMA_SQL)


def downgrade() -> None:
    for table in (
        "processed_events",
        "price_adjustments",
        "refund_requests",
        "wallet_transactions",
        "wallets",
        "payments",
        "coupon_usages",
        "bookings",
        "coupon_mappings",
        "coupons",
        "rooms",
        "room_types",
        "hotels",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table}")
