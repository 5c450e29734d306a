from rest_framework import serializers

from .models import Vote


class VoteSerializer(serializers.ModelSerializer):
    nominee_name = serializers.SerializerMethodField()
    category_name = serializers.CharField(source="category.name", read_only=True)

    class Meta:
        model = Vote
        fields = [
            "id", "nominee", "nominee_name", "category", "category_name",
            "payment_reference", "amount", "currency", "status",
            "verification_method", "verified_at", "created",
        ]
        read_only_fields = fields

    def get_nominee_name(self, obj) -> str:
        student = obj.nominee.student
        return student.get_full_name() or student.email


class AdminVoteSerializer(VoteSerializer):
    class Meta(VoteSerializer.Meta):
        fields = VoteSerializer.Meta.fields + [
            "voter", "net_amount", "processing_fee", "transaction_reference", "payment_method",
            "fraud_score", "is_flagged", "flag_reason", "reviewed_by", "reviewed_at", "review_notes",
            "refund_reason", "refunded_at", "ip_address",
        ]
        read_only_fields = fields


class FlagSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=3, max_length=200)
    score = serializers.IntegerField(required=False, min_value=0, max_value=100)


class UnflagSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)
