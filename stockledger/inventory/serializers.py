from rest_framework import serializers

from stockledger.core.models import Profile
from stockledger.core.utils import get_ledger_setting
from .models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    """Read representation of a movement, with the product and responsible names joined in"""
    product_id = serializers.IntegerField(read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_unit = serializers.CharField(source='product.unit', read_only=True)
    product_current_quantity = serializers.DecimalField(source='product.current_quantity', max_digits=10,
                                                        decimal_places=2, read_only=True)
    responsible_user_id = serializers.IntegerField(read_only=True)
    responsible_name = serializers.SerializerMethodField()

    class Meta:
        model = StockMovement
        fields = ['id', 'product_id', 'product_name', 'product_unit', 'product_current_quantity',
                  'movement_type', 'quantity', 'responsible_user_id', 'responsible_name', 'notes', 'created_at']
        read_only_fields = fields

    def get_responsible_name(self, obj):
        try:
            return obj.responsible_user.profile.full_name
        except Profile.DoesNotExist:
            return get_ledger_setting('DEFAULT_PROFILE_NAME')
