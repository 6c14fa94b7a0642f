"""Central registry for Redis Lua scripts used by the payment record store.

Scripts are registered at application startup for EVALSHA optimization. Each
one performs a single-record transition atomically, so concurrent requests
for the same quote can never interleave between the check and the write.

Return Code Conventions:
    Scripts returning a tuple use the first element as a status code and the
    second as the record JSON for reference:

    - 0: Rejected - the precondition did not hold (record already paid,
         lease held by someone else, token already stored). The second
         element contains the current record.

    - 1: Success - the write happened. The second element contains the
         stored record JSON.

    - 2: Record not found - the record key does not exist. The second
         element is an empty string.

    "create_payment_record" returns a bare integer: 1 created, 0 quote id
    already exists, 3 access token already exists.
"""

PAYWALL_SCRIPTS = {
    "create_payment_record": """
        local record_key = KEYS[1]
        local token_key = KEYS[2]
        local all_key = KEYS[3]
        local expiry_key = KEYS[4]
        local record_json = ARGV[1]
        local quote_id = ARGV[2]
        local created_ts = ARGV[3]
        local expires_ts = ARGV[4]

        if redis.call('EXISTS', record_key) == 1 then
            return 0
        end
        if redis.call('EXISTS', token_key) == 1 then
            return 3
        end

        redis.call('SET', record_key, record_json)
        redis.call('SET', token_key, quote_id)
        redis.call('ZADD', all_key, created_ts, quote_id)
        redis.call('ZADD', expiry_key, expires_ts, quote_id)
        return 1
    """,
    "mark_paid": """
        local record_key = KEYS[1]
        local lease_key = KEYS[2]
        local paid_json = ARGV[1]
        local lease_owner = ARGV[2]
        local lease_ms = ARGV[3]

        local current_raw = redis.call('GET', record_key)
        if not current_raw then
            return {2, ''}
        end

        -- Only the caller that observes is_paid == false wins the transition
        local current = cjson.decode(current_raw)
        if current.is_paid then
            return {0, current_raw}
        end

        redis.call('SET', record_key, paid_json)
        redis.call('SET', lease_key, lease_owner, 'PX', lease_ms)
        return {1, paid_json}
    """,
    "acquire_claim_lease": """
        local record_key = KEYS[1]
        local lease_key = KEYS[2]
        local lease_owner = ARGV[1]
        local lease_ms = ARGV[2]

        local current_raw = redis.call('GET', record_key)
        if not current_raw then
            return {2, ''}
        end

        local current = cjson.decode(current_raw)
        local token = current.claimed_token
        if not current.is_paid or (token ~= nil and token ~= cjson.null) then
            return {0, current_raw}
        end
        -- pending with no lease means the last claimer died before finishing
        if current.claim_status ~= 'retriable' and current.claim_status ~= 'pending' then
            return {0, current_raw}
        end
        if redis.call('EXISTS', lease_key) == 1 then
            return {0, current_raw}
        end

        redis.call('SET', lease_key, lease_owner, 'PX', lease_ms)
        return {1, current_raw}
    """,
    "finish_claim": """
        local record_key = KEYS[1]
        local lease_key = KEYS[2]
        local new_val = ARGV[1]
        local lease_owner = ARGV[2]

        local current_raw = redis.call('GET', record_key)
        if not current_raw then
            return {2, ''}
        end

        -- An expired lease still lets the outcome land; a new holder does not
        local holder = redis.call('GET', lease_key)
        if holder and holder ~= lease_owner then
            return {0, current_raw}
        end

        local current = cjson.decode(current_raw)
        local token = current.claimed_token
        if token ~= nil and token ~= cjson.null then
            redis.call('DEL', lease_key)
            return {0, current_raw}
        end

        redis.call('SET', record_key, new_val)
        redis.call('DEL', lease_key)
        return {1, new_val}
    """,
    "delete_payment_record": """
        local record_key = KEYS[1]
        local token_key = KEYS[2]
        local all_key = KEYS[3]
        local expiry_key = KEYS[4]
        local quote_id = ARGV[1]

        local deleted = redis.call('DEL', record_key)
        redis.call('DEL', token_key)
        redis.call('ZREM', all_key, quote_id)
        redis.call('ZREM', expiry_key, quote_id)
        return deleted
    """,
}
