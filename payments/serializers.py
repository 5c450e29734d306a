from rest_framework import serializers

from .models import Payment


class PaymentInitRequestSerializer(serializers.Serializer):
    nominee_id = serializers.IntegerField(min_value=1)
    category_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    email = serializers.EmailField(required=False)
    callback_url = serializers.URLField(required=False)


class PaymentInitResponseSerializer(serializers.Serializer):
    reference = serializers.CharField()
    authorization_url = serializers.URLField()
    access_code = serializers.CharField(allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    expires_at = serializers.DateTimeField()


class PaymentSerializer(serializers.ModelSerializer):
    reference = serializers.CharField(source="internal_reference", read_only=True)
    nominee_name = serializers.SerializerMethodField()
    category_name = serializers.CharField(source="category.name", read_only=True)
    vote_id = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id", "reference", "gateway_reference", "gateway", "amount", "currency", "status",
            "nominee", "nominee_name", "category", "category_name", "vote_id",
            "authorization_url", "channel", "total_fees", "net_amount",
            "paid_at", "failed_at", "failure_reason", "expires_at",
            "refund_amount", "refunded_at", "created", "updated",
        ]
        read_only_fields = fields

    def get_nominee_name(self, obj) -> str:
        student = obj.nominee.student
        return student.get_full_name() or student.email

    def get_vote_id(self, obj):
        vote = getattr(obj, "vote", None)
        return vote.pk if vote else None


class AdminPaymentSerializer(PaymentSerializer):
    class Meta(PaymentSerializer.Meta):
        fields = PaymentSerializer.Meta.fields + [
            "user", "email", "ip_address", "fraud_score", "is_flagged", "flag_reason",
            "retry_attempts", "webhook_received", "webhook_attempts", "refund_reason",
            "refund_reference", "reconciled_at",
        ]
        read_only_fields = fields


class RefundRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=10, max_length=500)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)


class StatsQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    category = serializers.IntegerField(required=False, min_value=1)


class BackfillRequestSerializer(serializers.Serializer):
    limit = serializers.IntegerField(required=False, min_value=1, max_value=1000)
